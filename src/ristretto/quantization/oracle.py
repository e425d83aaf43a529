# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import logging
import typing as ty
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from ristretto.net.description import NetworkDescription
from ristretto.quantization.config import DeviceSelection
from ristretto.quantization.statistics import LayerRange, \
    StatisticsAccumulator


@dataclass
class BatchOutput:
    """Result of one forward pass of an engine.

    Parameters
    ----------
    outputs : OrderedDict[str, numpy.ndarray]
        Output blobs of the network in output order.
    loss : float
        Loss of the batch.
    loss_weights : Dict[str, float]
        Loss weight per output name. Outputs without weight are no losses.
    layer_ranges : Mapping[str, LayerRange], optional
        Maximal absolute values per layer, reported when the engine was
        asked to collect ranges.
    """
    outputs: ty.Dict[str, np.ndarray]
    loss: float = 0.0
    loss_weights: ty.Dict[str, float] = field(default_factory=dict)
    layer_ranges: ty.Optional[ty.Mapping[str, LayerRange]] = None


class AbstractForwardEngine(ABC):
    """Executes a network description on calibration batches. Each call of
    forward consumes the next batch."""

    @abstractmethod
    def forward(self, collect_ranges: bool = False) -> BatchOutput:
        pass


EngineFactory = ty.Callable[[NetworkDescription, str, DeviceSelection],
                            AbstractForwardEngine]


@dataclass
class EvaluationResult:
    """Mean scores of an evaluation. `accuracy` is the selected score."""
    accuracy: float
    loss: float
    scores: ty.List[ty.Tuple[str, float]] = field(default_factory=list)


class AbstractEvaluationOracle(ABC):
    """Scores a network description on a fixed number of calibration
    batches."""

    @abstractmethod
    def evaluate(self,
                 network: NetworkDescription,
                 weights: str,
                 iterations: int,
                 score_index: int = 0,
                 accumulator: ty.Optional[StatisticsAccumulator] = None) \
            -> EvaluationResult:
        pass


class EvaluationOracle(AbstractEvaluationOracle):
    """Evaluation oracle running the forward passes of an engine.

    One engine is created per evaluation. Scores are averaged over all
    iterations for every element of every network output, in output order.

    Parameters
    ----------
    engine_factory : EngineFactory
        Creates an engine for a network description, weights and devices.
    devices : DeviceSelection
        Devices passed to the engine factory.
    loglevel : int
        Level of output to the log; default: 'logging.WARNING'.
    """

    def __init__(self,
                 engine_factory: EngineFactory,
                 devices: ty.Optional[DeviceSelection] = None,
                 loglevel: int = logging.WARNING):
        self.engine_factory = engine_factory
        self.devices = devices or DeviceSelection()
        self.log = logging.getLogger(__name__)
        self.log.setLevel(loglevel)

    def evaluate(self,
                 network: NetworkDescription,
                 weights: str,
                 iterations: int,
                 score_index: int = 0,
                 accumulator: ty.Optional[StatisticsAccumulator] = None) \
            -> EvaluationResult:
        """Runs `iterations` forward passes of `network`.

        Parameters
        ----------
        network : NetworkDescription
            Network to execute.
        weights : str
            Trained weights, passed to the engine factory.
        iterations : int
            Number of batches.
        score_index : int
            Index of the flattened output element reported as accuracy.
        accumulator : StatisticsAccumulator, optional
            If given, the layer ranges of every batch are folded into it.

        Returns
        -------
        EvaluationResult
            Mean accuracy, loss and all mean scores.
        """
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got "
                             f"{iterations}.")
        self.log.info(f"Running for {iterations} iterations.")
        engine = self.engine_factory(network, weights, self.devices)
        collect_ranges = accumulator is not None

        score_names: ty.List[str] = []
        score_sums: ty.Optional[np.ndarray] = None
        loss_weights: ty.Dict[str, float] = {}
        loss = 0.0
        for i in range(iterations):
            batch = engine.forward(collect_ranges=collect_ranges)
            if collect_ranges:
                if batch.layer_ranges is None:
                    raise RuntimeError("Engine did not report layer ranges "
                                       "although they were requested.")
                accumulator.update_ranges(batch.layer_ranges)
            loss += batch.loss

            names, scores = self._flatten(batch.outputs)
            if score_sums is None:
                score_names = names
                score_sums = np.zeros(len(scores), dtype=np.float64)
                loss_weights = dict(batch.loss_weights)
            elif len(scores) != len(score_sums):
                raise RuntimeError(f"Batch {i} has {len(scores)} scores, "
                                   f"expected {len(score_sums)}.")
            score_sums += scores
            for name, score in zip(names, scores):
                self.log.debug(f"Batch {i}, {name} = {score}")

        loss /= iterations
        self.log.info(f"Loss: {loss}")
        mean_scores = score_sums / iterations
        for name, score in zip(score_names, mean_scores):
            loss_weight = loss_weights.get(name, 0.0)
            msg = f"{name} = {score}"
            if loss_weight:
                msg += f" (* {loss_weight} = {loss_weight * score} loss)"
            self.log.info(msg)

        if not 0 <= score_index < len(mean_scores):
            raise IndexError(f"Score index {score_index} out of range for "
                             f"{len(mean_scores)} network scores.")
        return EvaluationResult(
            accuracy=float(mean_scores[score_index]),
            loss=float(loss),
            scores=[(name, float(score))
                    for name, score in zip(score_names, mean_scores)])

    @staticmethod
    def _flatten(outputs: ty.Mapping[str, np.ndarray]) \
            -> ty.Tuple[ty.List[str], np.ndarray]:
        names = []
        values = []
        for name, blob in outputs.items():
            blob = np.asarray(blob, dtype=np.float64).ravel()
            names.extend([name] * blob.size)
            values.append(blob)
        if not values:
            return names, np.zeros(0, dtype=np.float64)
        return names, np.concatenate(values)
