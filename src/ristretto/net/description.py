# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import copy
import typing as ty
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum, unique


@unique
class LayerKind(Enum):
    """Enumeration of the structural kinds of layers relevant to
    quantization."""
    CONVOLUTION = 0
    FULLY_CONNECTED = 1
    OTHER = 2

    @staticmethod
    def from_type(layer_type: str) -> 'LayerKind':
        """Returns the LayerKind of a layer type tag. Quantized variants map
        to the kind of their floating point layer type."""
        if layer_type in CONVOLUTION_TYPES:
            return LayerKind.CONVOLUTION
        if layer_type in FULLY_CONNECTED_TYPES:
            return LayerKind.FULLY_CONNECTED
        return LayerKind.OTHER


@unique
class Role(Enum):
    """Enumeration of the roles a quantization parameter can describe."""
    PARAMETERS = "params"
    ACTIVATION_IN = "layer_in"
    ACTIVATION_OUT = "layer_out"


CONVOLUTION_TYPES = ("Convolution", "ConvolutionRistretto")
FULLY_CONNECTED_TYPES = ("InnerProduct", "FcRistretto")

# Layer types executed by the engine with dynamic fixed point arithmetic.
QUANTIZED_TYPES = {
    LayerKind.CONVOLUTION: "ConvolutionRistretto",
    LayerKind.FULLY_CONNECTED: "FcRistretto",
}

PARAMETERS = frozenset({Role.PARAMETERS})
ACTIVATIONS = frozenset({Role.ACTIVATION_IN, Role.ACTIVATION_OUT})

QUANTIZATION_PARAM_KEY = "quantization_param"


@dataclass(frozen=True)
class QuantizationParameter:
    """Dynamic fixed point format of one role of one layer.

    The fractional length may be negative, in which case the bit-width can
    not hold the integer part of the observed dynamic range.
    """
    bitwidth: int
    fractional_length: int

    @property
    def integer_length(self) -> int:
        return self.bitwidth - self.fractional_length


def _as_int(value: ty.Any, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{key}' requires an integer, got {value!r}.")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValueError(f"'{key}' requires an integer, got {value!r}.")
    return value


def _in_order(items: ty.Mapping[str, ty.Any],
              key_order: ty.Sequence[str]) -> ty.Dict[str, ty.Any]:
    """Orders `items` by `key_order`. Keys missing in `key_order` follow in
    their own order."""
    ordered = OrderedDict((key, items[key]) for key in key_order
                          if key in items)
    ordered.update((key, value) for key, value in items.items()
                   if key not in ordered)
    return ordered


class LayerSpec:
    """A single named layer of a NetworkDescription.

    Only the type and the quantization parameters are ever modified by
    quantization. All other keys of the layer, including unknown keys of its
    `quantization_param` block, are kept and written back verbatim in their
    original order.

    Parameters
    ----------
    name : str
        Name of the layer, unique within its network.
    type : str
        Type tag of the layer, e.g. 'Convolution'.
    quantization : Dict[Role, QuantizationParameter], optional
        Quantization parameters per role.
    fields : Dict[str, Any], optional
        All remaining keys of the layer.
    param_fields : Dict[str, Any], optional
        Content of the `quantization_param` block as read. Keys of roles in
        `quantization` are overwritten on output.
    key_order : Sequence[str], optional
        Order of the keys of the layer as read.
    """

    def __init__(self,
                 name: str,
                 type: str,
                 quantization: ty.Optional[
                     ty.Dict[Role, QuantizationParameter]] = None,
                 fields: ty.Optional[ty.Dict[str, ty.Any]] = None,
                 param_fields: ty.Optional[ty.Dict[str, ty.Any]] = None,
                 key_order: ty.Optional[ty.Sequence[str]] = None):
        self.name = name
        self.type = type
        self.quantization: ty.Dict[Role, QuantizationParameter] = \
            dict(quantization or {})
        self.fields: ty.Dict[str, ty.Any] = OrderedDict(fields or {})
        self.param_fields: ty.Optional[ty.Dict[str, ty.Any]] = \
            None if param_fields is None else OrderedDict(param_fields)
        self.key_order: ty.List[str] = list(key_order or [])

    @property
    def kind(self) -> LayerKind:
        return LayerKind.from_type(self.type)

    @property
    def is_quantized(self) -> bool:
        return len(self.quantization) > 0

    def set_quantization(self,
                         role: Role,
                         parameter: QuantizationParameter) -> None:
        self.quantization[role] = parameter

    def copy(self) -> 'LayerSpec':
        return LayerSpec(self.name,
                         self.type,
                         quantization=self.quantization,
                         fields=copy.deepcopy(self.fields),
                         param_fields=copy.deepcopy(self.param_fields),
                         key_order=self.key_order)

    def _quantization_param(self) -> ty.Dict[str, ty.Any]:
        param = OrderedDict(copy.deepcopy(self.param_fields or {}))
        for role in Role:
            if role not in self.quantization:
                continue
            q = self.quantization[role]
            for key, value in ((f"bw_{role.value}", q.bitwidth),
                               (f"fl_{role.value}", q.fractional_length)):
                # Equal values keep their original representation.
                if key not in param or param[key] != value:
                    param[key] = value
        return param

    def to_dict(self) -> ty.Dict[str, ty.Any]:
        layer = OrderedDict()
        layer["name"] = self.name
        layer["type"] = self.type
        layer.update(copy.deepcopy(self.fields))
        if self.quantization or self.param_fields is not None:
            layer[QUANTIZATION_PARAM_KEY] = self._quantization_param()
        return _in_order(layer, self.key_order)

    @classmethod
    def from_dict(cls, layer: ty.Mapping[str, ty.Any]) -> 'LayerSpec':
        if "name" not in layer or "type" not in layer:
            raise ValueError(f"Layer requires a 'name' and a 'type', got "
                             f"keys {sorted(layer)}.")
        fields = OrderedDict((key, copy.deepcopy(value))
                             for key, value in layer.items()
                             if key not in ("name", "type",
                                            QUANTIZATION_PARAM_KEY))
        param = layer.get(QUANTIZATION_PARAM_KEY)
        if param is not None and not isinstance(param, ty.Mapping):
            raise ValueError(f"'{QUANTIZATION_PARAM_KEY}' of layer "
                             f"'{layer['name']}' is not a mapping.")
        quantization = {}
        for role in Role:
            bw_key = f"bw_{role.value}"
            fl_key = f"fl_{role.value}"
            if param and bw_key in param and fl_key in param:
                quantization[role] = QuantizationParameter(
                    bitwidth=_as_int(param[bw_key], bw_key),
                    fractional_length=_as_int(param[fl_key], fl_key))
        return cls(str(layer["name"]), str(layer["type"]),
                   quantization=quantization,
                   fields=fields,
                   param_fields=copy.deepcopy(param),
                   key_order=list(layer))

    def __eq__(self, other):
        if not isinstance(other, LayerSpec):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"LayerSpec(name={self.name!r}, type={self.type!r})"


class NetworkDescription:
    """Ordered sequence of named layers describing a network.

    The order of the layers is the execution order. Layer names have to be
    unique.

    Parameters
    ----------
    layers : Iterable[LayerSpec]
        Layers in execution order.
    name : str, optional
        Name of the network.
    state : Dict[str, Any], optional
        Execution state of the network, e.g. {'phase': 'TEST'}.
    extra : Dict[str, Any], optional
        Any other top-level keys of the description.
    key_order : Sequence[str], optional
        Order of the top-level keys as read.
    """

    def __init__(self,
                 layers: ty.Iterable[LayerSpec],
                 name: str = "",
                 state: ty.Optional[ty.Dict[str, ty.Any]] = None,
                 extra: ty.Optional[ty.Dict[str, ty.Any]] = None,
                 key_order: ty.Optional[ty.Sequence[str]] = None):
        self.name = name
        self.state = state
        self.extra: ty.Dict[str, ty.Any] = OrderedDict(extra or {})
        self.key_order: ty.List[str] = list(key_order or [])
        self._layers: ty.List[LayerSpec] = list(layers)
        self._index: ty.Dict[str, int] = {}
        for idx, layer in enumerate(self._layers):
            if layer.name in self._index:
                raise ValueError(f"Duplicate layer name '{layer.name}' in "
                                 f"network '{self.name}'.")
            self._index[layer.name] = idx

    @property
    def layers(self) -> ty.List[LayerSpec]:
        return self._layers

    @property
    def layer_names(self) -> ty.List[str]:
        return [layer.name for layer in self._layers]

    def layer(self, name: str) -> LayerSpec:
        """Returns the layer with the given name."""
        try:
            return self._layers[self._index[name]]
        except KeyError:
            raise KeyError(f"Network '{self.name}' has no layer "
                           f"'{name}'.") from None

    def layers_of_kind(self,
                       kinds: ty.Iterable[LayerKind]) -> ty.List[LayerSpec]:
        kinds = set(kinds)
        return [layer for layer in self._layers if layer.kind in kinds]

    def copy(self) -> 'NetworkDescription':
        return NetworkDescription([layer.copy() for layer in self._layers],
                                  name=self.name,
                                  state=copy.deepcopy(self.state),
                                  extra=copy.deepcopy(self.extra),
                                  key_order=self.key_order)

    def to_dict(self) -> ty.Dict[str, ty.Any]:
        net = OrderedDict()
        if self.name:
            net["name"] = self.name
        net.update(copy.deepcopy(self.extra))
        if self.state is not None:
            net["state"] = copy.deepcopy(self.state)
        net["layer"] = [layer.to_dict() for layer in self._layers]
        return _in_order(net, self.key_order)

    @classmethod
    def from_dict(cls,
                  net: ty.Mapping[str, ty.Any]) -> 'NetworkDescription':
        layers = [LayerSpec.from_dict(layer)
                  for layer in net.get("layer") or []]
        extra = OrderedDict((key, copy.deepcopy(value))
                            for key, value in net.items()
                            if key not in ("name", "state", "layer"))
        return cls(layers,
                   name=str(net.get("name", "")),
                   state=copy.deepcopy(net.get("state")),
                   extra=extra,
                   key_order=list(net))

    def __iter__(self) -> ty.Iterator[LayerSpec]:
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __eq__(self, other):
        if not isinstance(other, NetworkDescription):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"NetworkDescription(name={self.name!r}, "
                f"layers={self.layer_names})")
