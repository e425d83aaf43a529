# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import unittest

from ristretto.net.description import (LayerKind, LayerSpec,
                                       NetworkDescription,
                                       QuantizationParameter, Role)


class TestLayerKind(unittest.TestCase):
    def test_from_type(self):
        self.assertEqual(LayerKind.from_type("Convolution"),
                         LayerKind.CONVOLUTION)
        self.assertEqual(LayerKind.from_type("ConvolutionRistretto"),
                         LayerKind.CONVOLUTION)
        self.assertEqual(LayerKind.from_type("InnerProduct"),
                         LayerKind.FULLY_CONNECTED)
        self.assertEqual(LayerKind.from_type("FcRistretto"),
                         LayerKind.FULLY_CONNECTED)

    def test_no_substring_matching(self):
        """Checks that types merely containing a known type are OTHER"""
        for layer_type in ["Deconvolution", "ConvolutionDepthwise",
                           "InnerProductFoo", "ReLU", ""]:
            self.assertEqual(LayerKind.from_type(layer_type),
                             LayerKind.OTHER)


class TestLayerSpec(unittest.TestCase):
    def test_round_trip_keeps_fields(self):
        layer = {"name": "conv1",
                 "type": "ConvolutionRistretto",
                 "bottom": "data",
                 "top": "conv1",
                 "convolution_param": {"num_output": 20, "kernel_size": 5},
                 "quantization_param": {"bw_params": 8, "fl_params": 7,
                                        "bw_layer_in": 8, "fl_layer_in": 6,
                                        "bw_layer_out": 8,
                                        "fl_layer_out": -2}}
        spec = LayerSpec.from_dict(layer)
        self.assertEqual(spec.kind, LayerKind.CONVOLUTION)
        self.assertEqual(spec.quantization[Role.PARAMETERS],
                         QuantizationParameter(8, 7))
        self.assertEqual(spec.quantization[Role.ACTIVATION_OUT],
                         QuantizationParameter(8, -2))
        self.assertEqual(spec.to_dict(), layer)

    def test_unknown_quantization_keys_are_kept(self):
        layer = {"type": "Pooling",
                 "name": "pool1",
                 "bottom": "conv1",
                 "quantization_param": {"rounding_scheme": "NEAREST",
                                        "bw_params": 4},
                 "top": "pool1"}
        spec = LayerSpec.from_dict(layer)
        self.assertFalse(spec.is_quantized)
        self.assertEqual(list(spec.to_dict().items()), list(layer.items()))

    def test_set_quantization_keeps_other_keys(self):
        spec = LayerSpec.from_dict(
            {"name": "ip1", "type": "InnerProduct",
             "quantization_param": {"rounding_scheme": "STOCHASTIC",
                                    "bw_params": 4, "fl_layer_out": 3},
             "bottom": "conv2"})
        spec.set_quantization(Role.PARAMETERS, QuantizationParameter(8, 6))
        self.assertEqual(list(spec.to_dict().items()), [
            ("name", "ip1"), ("type", "InnerProduct"),
            ("quantization_param", {"rounding_scheme": "STOCHASTIC",
                                    "bw_params": 8, "fl_layer_out": 3,
                                    "fl_params": 6}),
            ("bottom", "conv2")])

    def test_non_integer_bitwidth(self):
        with self.assertRaises(ValueError):
            LayerSpec.from_dict({"name": "conv1", "type": "Convolution",
                                 "quantization_param": {"bw_params": 7.5,
                                                        "fl_params": 6}})
        spec = LayerSpec.from_dict(
            {"name": "conv1", "type": "Convolution",
             "quantization_param": {"bw_params": 8.0, "fl_params": 6}})
        self.assertEqual(spec.quantization[Role.PARAMETERS],
                         QuantizationParameter(8, 6))

    def test_missing_name(self):
        with self.assertRaises(ValueError):
            LayerSpec.from_dict({"type": "ReLU"})

    def test_unquantized_layer_has_no_quantization_param(self):
        spec = LayerSpec("relu1", "ReLU", fields={"bottom": "ip1"})
        self.assertFalse(spec.is_quantized)
        self.assertNotIn("quantization_param", spec.to_dict())

    def test_copy_is_independent(self):
        spec = LayerSpec("ip1", "InnerProduct",
                         fields={"inner_product_param": {"num_output": 10}})
        spec_copy = spec.copy()
        spec_copy.fields["inner_product_param"]["num_output"] = 20
        spec_copy.set_quantization(Role.PARAMETERS,
                                   QuantizationParameter(8, 6))
        self.assertEqual(spec.fields["inner_product_param"]["num_output"], 10)
        self.assertFalse(spec.is_quantized)

    def test_integer_length(self):
        self.assertEqual(QuantizationParameter(8, -2).integer_length, 10)


class TestNetworkDescription(unittest.TestCase):
    def setUp(self):
        self.net = NetworkDescription([
            LayerSpec("data", "Input"),
            LayerSpec("conv1", "Convolution"),
            LayerSpec("ip1", "InnerProduct"),
        ], name="net", extra={"input": "data"})

    def test_lookup(self):
        self.assertEqual(self.net.layer("ip1").type, "InnerProduct")
        self.assertIn("conv1", self.net)
        self.assertEqual(len(self.net), 3)
        self.assertEqual(self.net.layer_names, ["data", "conv1", "ip1"])
        with self.assertRaises(KeyError):
            self.net.layer("ip2")

    def test_duplicate_names(self):
        with self.assertRaises(ValueError):
            NetworkDescription([LayerSpec("a", "ReLU"),
                                LayerSpec("a", "ReLU")])

    def test_layers_of_kind(self):
        layers = self.net.layers_of_kind([LayerKind.FULLY_CONNECTED])
        self.assertEqual([layer.name for layer in layers], ["ip1"])

    def test_dict_round_trip(self):
        self.net.state = {"phase": "TEST"}
        net = NetworkDescription.from_dict(self.net.to_dict())
        self.assertEqual(net, self.net)
        self.assertEqual(net.extra, {"input": "data"})
        self.assertEqual(net.state, {"phase": "TEST"})

    def test_copy(self):
        net = self.net.copy()
        net.layer("conv1").type = "ConvolutionRistretto"
        self.assertEqual(self.net.layer("conv1").type, "Convolution")
        self.assertNotEqual(net, self.net)


if __name__ == '__main__':
    unittest.main()
