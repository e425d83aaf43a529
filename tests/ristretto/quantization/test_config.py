# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import unittest

from ristretto.quantization.config import (DeviceSelection,
                                           QuantizationConfig, TrimmingMode,
                                           parse_devices)
from ristretto.quantization.exceptions import (ConfigurationError,
                                               UnknownTrimmingMode)


class TestTrimmingMode(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(TrimmingMode.parse("dynamic_fixed_point"),
                         TrimmingMode.DYNAMIC_FIXED_POINT)
        self.assertEqual(TrimmingMode.parse(TrimmingMode.DYNAMIC_FIXED_POINT),
                         TrimmingMode.DYNAMIC_FIXED_POINT)

    def test_unknown(self):
        with self.assertRaises(UnknownTrimmingMode) as context:
            TrimmingMode.parse("minifloat")
        self.assertIsInstance(context.exception, ConfigurationError)
        self.assertIn("minifloat", str(context.exception))


class TestParseDevices(unittest.TestCase):
    def test_cpu(self):
        devices = parse_devices("")
        self.assertFalse(devices.use_gpu)
        self.assertIsNone(devices.primary)

    def test_list(self):
        devices = parse_devices("0, 2")
        self.assertEqual(devices, DeviceSelection((0, 2)))
        self.assertTrue(devices.use_gpu)
        self.assertEqual(devices.primary, 0)

    def test_all(self):
        self.assertEqual(parse_devices("all", num_available=3),
                         DeviceSelection((0, 1, 2)))
        self.assertFalse(parse_devices("all").use_gpu)

    def test_invalid(self):
        for gpus in ["0,a", "1,,2", "-1"]:
            with self.assertRaises(ValueError):
                parse_devices(gpus)


class TestQuantizationConfig(unittest.TestCase):
    def test_defaults(self):
        cfg = QuantizationConfig(model="net.json", weights="net.caffemodel",
                                 model_quantized="net_quantized.json")
        self.assertEqual(cfg.iterations, 50)
        self.assertEqual(cfg.trimming_mode, "dynamic_fixed_point")
        self.assertEqual(cfg.bitwidth_weights, 8)
        self.assertEqual(cfg.bitwidth_activations, 8)
        self.assertEqual(cfg.score_number, 0)

    def test_invalid_values(self):
        for kwargs in [{"iterations": 0},
                       {"bitwidth_weights": 0},
                       {"bitwidth_activations": -4},
                       {"score_number": -1}]:
            with self.assertRaises(ValueError):
                QuantizationConfig(model="net.json", weights="w",
                                   model_quantized="q.json", **kwargs)

    def test_unknown_mode_is_not_checked_early(self):
        cfg = QuantizationConfig(model="net.json", weights="w",
                                 model_quantized="q.json",
                                 trimming_mode="minifloat")
        self.assertEqual(cfg.trimming_mode, "minifloat")


if __name__ == '__main__':
    unittest.main()
