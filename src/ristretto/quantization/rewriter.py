# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import typing as ty

from ristretto.net.description import (ACTIVATIONS, QUANTIZED_TYPES,
                                       LayerKind, NetworkDescription, Role)
from ristretto.quantization.assigner import BitwidthConfig, assign_network
from ristretto.quantization.statistics import IntegerLengths


def quantized_type(kind: LayerKind) -> str:
    """Returns the type tag of the dynamic fixed point variant of a layer
    kind."""
    if kind in (LayerKind.CONVOLUTION, LayerKind.FULLY_CONNECTED):
        return QUANTIZED_TYPES[kind]
    elif kind == LayerKind.OTHER:
        raise ValueError("Layers of kind OTHER have no quantized variant.")
    raise AssertionError(f"Unhandled layer kind {kind}.")


def rewrite(base_network: NetworkDescription,
            target_kinds: ty.Iterable[LayerKind],
            target_roles: ty.Iterable[Role],
            bitwidths: BitwidthConfig,
            integer_lengths: IntegerLengths) -> NetworkDescription:
    """Derives a network in which the selected roles of the selected layer
    kinds are executed in dynamic fixed point.

    The base network is not modified. Layers of other kinds keep their
    floating point type and are copied unchanged. Rewriting an already
    rewritten network with the same arguments overwrites the quantization
    parameters with identical values.

    Parameters
    ----------
    base_network : NetworkDescription
        Network to derive from.
    target_kinds : Iterable[LayerKind]
        Kinds of layers to quantize. OTHER is not allowed.
    target_roles : Iterable[Role]
        Roles to quantize. Input and output activations can only be
        quantized together.
    bitwidths : BitwidthConfig
        Bit-widths per section.
    integer_lengths : IntegerLengths
        Integer lengths of the profiling run of the base network.

    Returns
    -------
    NetworkDescription
        The rewritten copy.
    """
    target_kinds = frozenset(target_kinds)
    target_roles = frozenset(target_roles)
    if LayerKind.OTHER in target_kinds:
        raise ValueError("Layers of kind OTHER can not be quantized.")
    requested_activations = target_roles & ACTIVATIONS
    if requested_activations and requested_activations != ACTIVATIONS:
        raise ValueError("Input and output activations have to be quantized "
                         "together.")

    network = base_network.copy()
    if not target_roles:
        return network

    assignments = assign_network(network, target_kinds, target_roles,
                                 bitwidths, integer_lengths)
    for layer_name, formats in assignments.items():
        layer = network.layer(layer_name)
        layer.type = quantized_type(layer.kind)
        for role, parameter in formats.items():
            layer.set_quantization(role, parameter)
    return network
