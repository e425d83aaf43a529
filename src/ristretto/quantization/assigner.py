# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import typing as ty
from collections import OrderedDict
from dataclasses import dataclass

from ristretto.net.description import (ACTIVATIONS, LayerKind,
                                       NetworkDescription,
                                       QuantizationParameter, Role)
from ristretto.quantization.statistics import IntegerLengths
from ristretto.utils.float2fixed import get_fractional_length


@dataclass(frozen=True)
class BitwidthConfig:
    """Bit-widths of the quantized network sections. None leaves the
    section in floating point. Input and output activations share a single
    bit-width."""
    conv_params: ty.Optional[int] = None
    fc_params: ty.Optional[int] = None
    activations: ty.Optional[int] = None

    def bitwidth(self, kind: LayerKind, role: Role) -> ty.Optional[int]:
        """Returns the bit-width of a role in a layer of the given kind."""
        if role in ACTIVATIONS:
            return self.activations
        if role == Role.PARAMETERS:
            if kind == LayerKind.CONVOLUTION:
                return self.conv_params
            elif kind == LayerKind.FULLY_CONNECTED:
                return self.fc_params
            elif kind == LayerKind.OTHER:
                return None
        raise AssertionError(f"Unhandled combination {kind}, {role}.")


def assign(bitwidth: int, integer_length: int) -> QuantizationParameter:
    """Combines a bit-width and an integer length into a dynamic fixed point
    format. The fractional length is not clamped and may be negative."""
    return QuantizationParameter(
        bitwidth=bitwidth,
        fractional_length=get_fractional_length(bitwidth, integer_length))


def assign_layer(layer_name: str,
                 role: Role,
                 bitwidth: int,
                 integer_lengths: IntegerLengths) -> QuantizationParameter:
    """Assigns the format of one role of one layer.

    Raises
    ------
    MissingLayerStatistics
        If the layer was not profiled.
    """
    return assign(bitwidth, integer_lengths.get(layer_name, role))


def assign_network(network: NetworkDescription,
                   kinds: ty.Iterable[LayerKind],
                   roles: ty.Iterable[Role],
                   bitwidths: BitwidthConfig,
                   integer_lengths: IntegerLengths) \
        -> ty.Dict[str, ty.Dict[Role, QuantizationParameter]]:
    """Assigns formats to the given roles of every layer of the given kinds.

    Parameters
    ----------
    network : NetworkDescription
        Network whose layers are matched.
    kinds : Iterable[LayerKind]
        Layer kinds to quantize.
    roles : Iterable[Role]
        Roles to quantize.
    bitwidths : BitwidthConfig
        Bit-widths per section.
    integer_lengths : IntegerLengths
        Integer lengths of the profiling run.

    Returns
    -------
    dict
        Formats per layer name and role, in execution order.

    Raises
    ------
    ValueError
        If a requested section has no bit-width.
    """
    roles = [role for role in Role if role in set(roles)]
    assignments = OrderedDict()
    for layer in network.layers_of_kind(kinds):
        formats = OrderedDict()
        for role in roles:
            bitwidth = bitwidths.bitwidth(layer.kind, role)
            if bitwidth is None:
                raise ValueError(f"No bit-width configured for {role.name} "
                                 f"of {layer.kind.name} layer "
                                 f"'{layer.name}'.")
            formats[role] = assign_layer(layer.name, role, bitwidth,
                                         integer_lengths)
        assignments[layer.name] = formats
    return assignments
