# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import typing as ty


class RistrettoError(Exception):
    """Base class of all errors raised during quantization."""


class ConfigurationError(RistrettoError):
    """Raised for invalid configurations before any network is executed."""


class UnknownTrimmingMode(ConfigurationError):
    def __init__(self, trimming_mode: str, supported: ty.Iterable[str]):
        msg = (f"Unknown trimming mode: '{trimming_mode}'. Supported modes "
               f"are {sorted(supported)}.")
        super().__init__(msg)
        self.trimming_mode = trimming_mode


class IntegrityPreconditionError(RistrettoError):
    """Raised when a precondition for persisting the result is not met."""


class MissingWritePermissions(IntegrityPreconditionError):
    def __init__(self, path, reason: ty.Optional[Exception] = None):
        msg = f"Missing write permissions for '{path}'"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(msg)
        self.path = path


class MissingLayerStatistics(RistrettoError, KeyError):
    def __init__(self, layer_name: str):
        msg = (f"No statistics were collected for layer '{layer_name}'. "
               f"The layer was not executed during profiling.")
        super().__init__(msg)
        self.layer_name = layer_name

    def __str__(self):
        return self.args[0]
