# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

from __future__ import annotations

import typing as ty
from collections import OrderedDict
from dataclasses import dataclass

import numpy as np

from ristretto.net.description import Role
from ristretto.quantization.exceptions import MissingLayerStatistics
from ristretto.utils.float2fixed import get_integer_lengths

if ty.TYPE_CHECKING:
    from ristretto.net.description import NetworkDescription
    from ristretto.quantization.oracle import (AbstractEvaluationOracle,
                                               EvaluationResult)


class LayerRange(ty.NamedTuple):
    """Maximal absolute values observed in one layer during one batch."""
    max_abs_input: float
    max_abs_output: float
    max_abs_param: float


@dataclass(frozen=True)
class LayerStatistics:
    """Maximal absolute values of one layer over a whole profiling run."""
    layer_name: str
    max_abs_param: float = 0.0
    max_abs_input: float = 0.0
    max_abs_output: float = 0.0

    def magnitude(self, role: Role) -> float:
        if role == Role.PARAMETERS:
            return self.max_abs_param
        elif role == Role.ACTIVATION_IN:
            return self.max_abs_input
        elif role == Role.ACTIVATION_OUT:
            return self.max_abs_output
        raise AssertionError(f"Unhandled role {role}.")


class StatisticsAccumulator:
    """Folds per-batch layer ranges into running maxima per layer and role.

    The accumulator is owned by the caller of a single profiling run. Since
    the maximum is commutative and associative, the result does not depend
    on the order of the batches.
    """

    def __init__(self):
        # layer name -> [max_abs_input, max_abs_output, max_abs_param]
        self._maxima: ty.Dict[str, np.ndarray] = OrderedDict()

    def update(self,
               layer_name: str,
               max_abs_input: float,
               max_abs_output: float,
               max_abs_param: float) -> None:
        observed = np.abs(np.array([max_abs_input,
                                    max_abs_output,
                                    max_abs_param], dtype=np.float64))
        # fmax ignores NaN observations, so maxima never decrease.
        maxima = self._maxima.setdefault(layer_name,
                                         np.zeros(3, dtype=np.float64))
        np.fmax(maxima, observed, out=maxima)

    def update_ranges(self, ranges: ty.Mapping[str, LayerRange]) -> None:
        """Folds the ranges of all layers observed during one batch."""
        for layer_name, layer_range in ranges.items():
            self.update(layer_name, *layer_range)

    def merge(self, other: StatisticsAccumulator) -> None:
        for layer_name, maxima in other._maxima.items():
            self.update(layer_name, *maxima)

    @property
    def layer_names(self) -> ty.List[str]:
        return list(self._maxima)

    @property
    def statistics(self) -> ty.Dict[str, LayerStatistics]:
        return OrderedDict(
            (name, LayerStatistics(layer_name=name,
                                   max_abs_param=float(m[2]),
                                   max_abs_input=float(m[0]),
                                   max_abs_output=float(m[1])))
            for name, m in self._maxima.items())

    def __contains__(self, layer_name: str) -> bool:
        return layer_name in self._maxima

    def __len__(self) -> int:
        return len(self._maxima)


def profile(network: NetworkDescription,
            weights: str,
            iterations: int,
            oracle: AbstractEvaluationOracle,
            score_index: int = 0) \
        -> ty.Tuple[ty.Dict[str, LayerStatistics], EvaluationResult]:
    """Runs the floating point network and collects layer statistics.

    This has to be run on the unmodified network. The statistics are the
    reference scale of every later quantized trial.

    Parameters
    ----------
    network : NetworkDescription
        Floating point network.
    weights : str
        Trained weights, passed to the oracle.
    iterations : int
        Number of calibration batches.
    oracle : AbstractEvaluationOracle
        Oracle executing the network.
    score_index : int
        Index of the network output reported as accuracy.

    Returns
    -------
    tuple
        The statistics per layer name and the baseline evaluation result.
    """
    accumulator = StatisticsAccumulator()
    result = oracle.evaluate(network, weights, iterations,
                             score_index=score_index,
                             accumulator=accumulator)
    return accumulator.statistics, result


class IntegerLengths:
    """Integer lengths per layer and role, derived once from the layer
    statistics of a profiling run."""

    def __init__(self, lengths: ty.Mapping[str, ty.Mapping[Role, int]]):
        self._lengths = OrderedDict(
            (name, dict(roles)) for name, roles in lengths.items())

    @classmethod
    def from_statistics(cls,
                        statistics: ty.Mapping[str, LayerStatistics]) \
            -> IntegerLengths:
        names = list(statistics)
        roles = list(Role)
        magnitudes = np.array([[statistics[name].magnitude(role)
                                for role in roles] for name in names],
                              dtype=np.float64).reshape(len(names),
                                                        len(roles))
        bits = get_integer_lengths(magnitudes)
        return cls(OrderedDict(
            (name, {role: int(bits[i, j]) for j, role in enumerate(roles)})
            for i, name in enumerate(names)))

    def get(self, layer_name: str, role: Role) -> int:
        try:
            return self._lengths[layer_name][role]
        except KeyError:
            raise MissingLayerStatistics(layer_name) from None

    def as_dict(self) -> ty.Dict[str, ty.Dict[Role, int]]:
        return OrderedDict((name, dict(roles))
                           for name, roles in self._lengths.items())

    @property
    def layer_names(self) -> ty.List[str]:
        return list(self._lengths)

    def __contains__(self, layer_name: str) -> bool:
        return layer_name in self._lengths

    def __len__(self) -> int:
        return len(self._lengths)
