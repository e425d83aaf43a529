# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import json
import logging
import os
import typing as ty
from pathlib import Path

import yaml

from ristretto.net.description import NetworkDescription
from ristretto.quantization.exceptions import MissingWritePermissions

log = logging.getLogger(__name__)

_JSON_SUFFIXES = (".json",)
_YAML_SUFFIXES = (".yaml", ".yml")


def _suffix(path: ty.Union[str, Path]) -> str:
    suffix = Path(path).suffix.lower()
    if suffix not in _JSON_SUFFIXES + _YAML_SUFFIXES:
        raise ValueError(f"Unsupported network description format "
                         f"'{suffix}' of file {path}. Expected one of "
                         f"{_JSON_SUFFIXES + _YAML_SUFFIXES}.")
    return suffix


def read_net_description(path: ty.Union[str, Path]) -> NetworkDescription:
    """Reads a network description from a JSON or YAML file.

    Parameters
    ----------
    path : str, Path
        Path of the description. The format is chosen by the file suffix.

    Returns
    -------
    NetworkDescription
        The parsed description.

    Raises
    ------
    OSError
        If the file does not exist.
    ValueError
        If the file suffix is not supported or the content is not a
        description.
    """
    suffix = _suffix(path)
    if not os.path.isfile(path):
        raise OSError(f"File {path} could not be found.")

    with open(path, "r", encoding="utf-8") as f:
        if suffix in _JSON_SUFFIXES:
            content = json.load(f)
        else:
            content = yaml.safe_load(f)

    if not isinstance(content, dict):
        raise ValueError(f"File {path} does not contain a network "
                         f"description.")
    net = NetworkDescription.from_dict(content)
    log.debug(f"Read network '{net.name}' with {len(net)} layers "
              f"from {path}")
    return net


def write_net_description(network: NetworkDescription,
                          path: ty.Union[str, Path]) -> None:
    """Writes a network description to a JSON or YAML file, chosen by the
    file suffix."""
    suffix = _suffix(path)
    content = _to_builtin(network.to_dict())
    with open(path, "w", encoding="utf-8") as f:
        if suffix in _JSON_SUFFIXES:
            json.dump(content, f, indent=2)
            f.write("\n")
        else:
            yaml.safe_dump(content, f, sort_keys=False)
    log.debug(f"Wrote network '{network.name}' to {path}")


def check_write_permissions(path: ty.Union[str, Path]) -> None:
    """Probes whether `path` can be written by creating and removing it.

    An already existing file is left untouched.

    Raises
    ------
    MissingWritePermissions
        If the file can not be created or opened for writing.
    """
    existed = os.path.exists(path)
    try:
        with open(path, "a"):
            pass
    except OSError as e:
        raise MissingWritePermissions(path, e) from e
    if not existed:
        os.remove(path)


def _to_builtin(value: ty.Any) -> ty.Any:
    """Converts OrderedDicts and tuples to plain dicts and lists so that
    yaml.safe_dump accepts them."""
    if isinstance(value, dict):
        return {key: _to_builtin(v) for key, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    return value
