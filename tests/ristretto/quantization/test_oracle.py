# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import logging
import unittest
from collections import OrderedDict

import numpy as np

from ristretto.quantization.config import DeviceSelection
from ristretto.quantization.oracle import (AbstractForwardEngine,
                                           BatchOutput, EvaluationOracle)
from ristretto.quantization.statistics import StatisticsAccumulator

from fakes import FakeEngineFactory, lenet


class SequenceEngine(AbstractForwardEngine):
    """Engine replaying a fixed list of batch outputs."""

    def __init__(self, batches):
        self.batches = list(batches)

    def forward(self, collect_ranges=False):
        return self.batches.pop(0)


class TestEvaluationOracle(unittest.TestCase):
    def test_mean_scores(self):
        batches = [
            BatchOutput(outputs=OrderedDict([
                ("accuracy", np.array([0.5])),
                ("top5", np.array([0.7, 0.9]))]), loss=1.0),
            BatchOutput(outputs=OrderedDict([
                ("accuracy", np.array([0.7])),
                ("top5", np.array([0.9, 0.7]))]), loss=3.0),
        ]
        oracle = EvaluationOracle(lambda net, w, d: SequenceEngine(batches))
        result = oracle.evaluate(lenet(), "weights", 2)
        self.assertAlmostEqual(result.accuracy, 0.6)
        self.assertAlmostEqual(result.loss, 2.0)
        self.assertEqual([name for name, _ in result.scores],
                         ["accuracy", "top5", "top5"])
        np.testing.assert_allclose([score for _, score in result.scores],
                                   [0.6, 0.8, 0.8])

    def test_score_index(self):
        oracle = EvaluationOracle(FakeEngineFactory())
        result = oracle.evaluate(lenet(), "weights", 2, score_index=1)
        self.assertAlmostEqual(result.accuracy, 0.25)
        with self.assertRaises(IndexError):
            oracle.evaluate(lenet(), "weights", 2, score_index=2)

    def test_collect_ranges(self):
        acc = StatisticsAccumulator()
        oracle = EvaluationOracle(FakeEngineFactory())
        oracle.evaluate(lenet(), "weights", 3, accumulator=acc)
        self.assertEqual(acc.statistics["ip2"].max_abs_output, 1000.0)

    def test_no_ranges_without_accumulator(self):
        batches = [BatchOutput(outputs={"accuracy": np.array([1.0])})]
        oracle = EvaluationOracle(lambda net, w, d: SequenceEngine(batches))
        result = oracle.evaluate(lenet(), "weights", 1)
        self.assertEqual(result.accuracy, 1.0)

    def test_missing_ranges(self):
        batches = [BatchOutput(outputs={"accuracy": np.array([1.0])})]
        oracle = EvaluationOracle(lambda net, w, d: SequenceEngine(batches))
        with self.assertRaises(RuntimeError):
            oracle.evaluate(lenet(), "weights", 1,
                            accumulator=StatisticsAccumulator())

    def test_changing_output_size(self):
        batches = [BatchOutput(outputs={"accuracy": np.array([1.0])}),
                   BatchOutput(outputs={"accuracy": np.array([1.0, 0.5])})]
        oracle = EvaluationOracle(lambda net, w, d: SequenceEngine(batches))
        with self.assertRaises(RuntimeError):
            oracle.evaluate(lenet(), "weights", 2)

    def test_invalid_iterations(self):
        oracle = EvaluationOracle(FakeEngineFactory())
        with self.assertRaises(ValueError):
            oracle.evaluate(lenet(), "weights", 0)

    def test_engine_error_propagates(self):
        def factory(net, weights, devices):
            raise OSError("weights not found")
        oracle = EvaluationOracle(factory)
        with self.assertRaises(OSError):
            oracle.evaluate(lenet(), "weights", 1)

    def test_devices_passed_to_factory(self):
        factory = FakeEngineFactory()
        devices = DeviceSelection((1, 2))
        oracle = EvaluationOracle(factory, devices=devices)
        oracle.evaluate(lenet(), "weights", 1)
        self.assertEqual(factory.devices, [devices])

    def test_logs_loss_weighted_scores(self):
        oracle = EvaluationOracle(FakeEngineFactory(), loglevel=logging.INFO)
        with self.assertLogs(oracle.log, level=logging.INFO) as logs:
            oracle.evaluate(lenet(), "weights", 2)
        self.assertIn("Running for 2 iterations.", logs.output[0])
        self.assertTrue(any("(* 1.0 = " in line for line in logs.output))


if __name__ == '__main__':
    unittest.main()
