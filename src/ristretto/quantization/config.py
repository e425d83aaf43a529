# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import typing as ty
from dataclasses import dataclass
from enum import Enum, unique

from ristretto.net.description import NetworkDescription
from ristretto.quantization.exceptions import UnknownTrimmingMode


@unique
class TrimmingMode(Enum):
    """Enumeration of the supported quantization strategies."""
    DYNAMIC_FIXED_POINT = "dynamic_fixed_point"

    @staticmethod
    def parse(trimming_mode: ty.Union[str, 'TrimmingMode']) \
            -> 'TrimmingMode':
        if isinstance(trimming_mode, TrimmingMode):
            return trimming_mode
        try:
            return TrimmingMode(trimming_mode)
        except ValueError:
            raise UnknownTrimmingMode(
                trimming_mode, [m.value for m in TrimmingMode]) from None


@dataclass(frozen=True)
class DeviceSelection:
    """Devices the engine executes on. An empty list of device ids selects
    the CPU."""
    device_ids: ty.Tuple[int, ...] = ()

    @property
    def use_gpu(self) -> bool:
        return len(self.device_ids) > 0

    @property
    def primary(self) -> ty.Optional[int]:
        return self.device_ids[0] if self.device_ids else None


def parse_devices(gpus: str, num_available: int = 0) -> DeviceSelection:
    """Parses a device string.

    Parameters
    ----------
    gpus : str
        'all' to select every available device, a comma separated list of
        device ids such as '0,2', or an empty string for the CPU.
    num_available : int
        Number of available devices, used for 'all'.

    Returns
    -------
    DeviceSelection
        The selected devices.
    """
    gpus = gpus.strip()
    if gpus == "all":
        return DeviceSelection(tuple(range(num_available)))
    if not gpus:
        return DeviceSelection()
    device_ids = []
    for token in gpus.split(","):
        token = token.strip()
        if not token.isdigit():
            raise ValueError(f"Invalid device id '{token}' in '{gpus}'.")
        device_ids.append(int(token))
    return DeviceSelection(tuple(device_ids))


@dataclass
class QuantizationConfig:
    """Parameters of a quantization run.

    Parameters
    ----------
    model : str, NetworkDescription
        Floating point network description or its path.
    weights : str
        Trained weights, passed to the engine as is.
    model_quantized : str
        Path the quantized network description is written to.
    iterations : int
        Number of calibration batches per evaluation.
    trimming_mode : str
        Quantization strategy. Only 'dynamic_fixed_point' is supported.
    bitwidth_weights : int
        Bit-width of convolution and fully connected parameters.
    bitwidth_activations : int
        Bit-width of layer input and output activations.
    gpus : str
        Device string, see parse_devices.
    score_number : int
        Index of the network output reported as accuracy.
    """
    model: ty.Union[str, NetworkDescription]
    weights: str
    model_quantized: str
    iterations: int = 50
    trimming_mode: str = TrimmingMode.DYNAMIC_FIXED_POINT.value
    bitwidth_weights: int = 8
    bitwidth_activations: int = 8
    gpus: str = ""
    score_number: int = 0

    def __post_init__(self):
        if self.iterations <= 0:
            raise ValueError(f"iterations must be positive, got "
                             f"{self.iterations}.")
        if self.bitwidth_weights <= 0:
            raise ValueError(f"bitwidth_weights must be positive, got "
                             f"{self.bitwidth_weights}.")
        if self.bitwidth_activations <= 0:
            raise ValueError(f"bitwidth_activations must be positive, got "
                             f"{self.bitwidth_activations}.")
        if self.score_number < 0:
            raise ValueError(f"score_number must not be negative, got "
                             f"{self.score_number}.")
