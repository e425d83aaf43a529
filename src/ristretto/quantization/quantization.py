# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import logging
import typing as ty
from enum import Enum, unique

from ristretto.net.description import (ACTIVATIONS, PARAMETERS, LayerKind,
                                       NetworkDescription, Role)
from ristretto.net.serialization import (check_write_permissions,
                                         read_net_description,
                                         write_net_description)
from ristretto.quantization.assigner import BitwidthConfig
from ristretto.quantization.config import (DeviceSelection,
                                           QuantizationConfig, TrimmingMode,
                                           parse_devices)
from ristretto.quantization.oracle import (AbstractEvaluationOracle,
                                           EngineFactory, EvaluationOracle,
                                           EvaluationResult)
from ristretto.quantization.report import (QuantizationReport, Section,
                                           SectionTrial,
                                           find_under_provisioned)
from ristretto.quantization.rewriter import rewrite
from ristretto.quantization.statistics import (IntegerLengths,
                                               LayerStatistics, profile)

CONV = frozenset({LayerKind.CONVOLUTION})
FC = frozenset({LayerKind.FULLY_CONNECTED})
CONV_AND_FC = CONV | FC


@unique
class SearchState(Enum):
    """States of the section search, entered in definition order."""
    INIT = 0
    BASELINE = 1
    TRIAL_CONV_WEIGHTS = 2
    TRIAL_FC_WEIGHTS = 3
    TRIAL_ACTIVATIONS = 4
    COMBINE = 5
    FINAL_EVALUATION = 6
    REPORT = 7
    DONE = 8


class Quantization:
    """Quantizes a floating point network to dynamic fixed point.

    The floating point network is profiled once to find the maximal
    absolute values of parameters and activations per layer. Convolution
    weights, fully connected weights and layer activations are then scored
    separately with the configured bit-widths, while the rest of the network
    remains in floating point. Finally all three sections are quantized
    together, scored and the resulting description is written to
    `config.model_quantized`.

    Exactly one of `engine_factory` and `oracle` has to be given.

    Parameters
    ----------
    config : QuantizationConfig
        Parameters of the run.
    engine_factory : EngineFactory, optional
        Creates engines for the selected devices.
    oracle : AbstractEvaluationOracle, optional
        Scores network descriptions. Device selection is then up to the
        oracle.
    num_available_devices : int
        Number of devices selected by gpus='all'.
    loglevel : int
        Level of output to the log; default: 'logging.WARNING'.
    """

    def __init__(self,
                 config: QuantizationConfig,
                 engine_factory: ty.Optional[EngineFactory] = None,
                 oracle: ty.Optional[AbstractEvaluationOracle] = None,
                 num_available_devices: int = 0,
                 loglevel: int = logging.WARNING):
        if (engine_factory is None) == (oracle is None):
            raise ValueError("Exactly one of engine_factory and oracle has "
                             "to be given.")
        self.config = config
        self.engine_factory = engine_factory
        self.oracle = oracle
        self.num_available_devices = num_available_devices
        self.log = logging.getLogger(__name__)
        self.log.setLevel(loglevel)
        self._loglevel = loglevel

        self.state = SearchState.INIT
        self.devices: ty.Optional[DeviceSelection] = None
        self.statistics: ty.Dict[str, LayerStatistics] = {}
        self.integer_lengths: ty.Optional[IntegerLengths] = None
        self.baseline: ty.Optional[EvaluationResult] = None
        self.quantized_net: ty.Optional[NetworkDescription] = None

    def quantize_net(self) -> QuantizationReport:
        """Runs the quantization and writes the quantized description.

        Returns
        -------
        QuantizationReport
            Baseline, section trials and the final configuration.

        Raises
        ------
        UnknownTrimmingMode
            If the trimming mode is not supported. Nothing is executed.
        MissingWritePermissions
            If `config.model_quantized` can not be written. Nothing is
            executed.
        """
        trimming_mode = TrimmingMode.parse(self.config.trimming_mode)
        check_write_permissions(self.config.model_quantized)
        self._set_devices()

        net = self._load_model()
        self._enter(SearchState.BASELINE)
        self._run_baseline(net)

        if trimming_mode == TrimmingMode.DYNAMIC_FIXED_POINT:
            report = self.quantize_2_dynamic_fixed_point(net)
        else:
            raise AssertionError(f"Unhandled trimming mode {trimming_mode}.")
        self._enter(SearchState.DONE)
        return report

    def quantize_2_dynamic_fixed_point(self, net: NetworkDescription) \
            -> QuantizationReport:
        """Scores the dynamic fixed point sections of a profiled network
        and writes the combined description."""
        if self.integer_lengths is None or self.baseline is None:
            raise RuntimeError("The network has to be profiled first.")
        cfg = self.config
        report = QuantizationReport(baseline_accuracy=self.baseline.accuracy)

        # The rest of the net remains in high precision format during the
        # section trials.
        self._enter(SearchState.TRIAL_CONV_WEIGHTS)
        report.trials.append(self._score_section(
            net, Section.CONV_WEIGHTS, CONV, PARAMETERS,
            BitwidthConfig(conv_params=cfg.bitwidth_weights),
            cfg.bitwidth_weights))

        self._enter(SearchState.TRIAL_FC_WEIGHTS)
        report.trials.append(self._score_section(
            net, Section.FC_WEIGHTS, FC, PARAMETERS,
            BitwidthConfig(fc_params=cfg.bitwidth_weights),
            cfg.bitwidth_weights))

        self._enter(SearchState.TRIAL_ACTIVATIONS)
        report.trials.append(self._score_section(
            net, Section.ACTIVATIONS, CONV_AND_FC, ACTIVATIONS,
            BitwidthConfig(activations=cfg.bitwidth_activations),
            cfg.bitwidth_activations))

        # A single bit-width is tried per section, it is taken as is.
        self._enter(SearchState.COMBINE)
        report.bitwidths = BitwidthConfig(
            conv_params=report.trials_of(Section.CONV_WEIGHTS)[0].bitwidth,
            fc_params=report.trials_of(Section.FC_WEIGHTS)[0].bitwidth,
            activations=report.trials_of(Section.ACTIVATIONS)[0].bitwidth)

        self._enter(SearchState.FINAL_EVALUATION)
        quantized = rewrite(net, CONV_AND_FC, PARAMETERS | ACTIVATIONS,
                            report.bitwidths, self.integer_lengths)
        result = self._evaluate(quantized)
        report.accuracy = result.accuracy
        report.loss = result.loss
        report.under_provisioned = find_under_provisioned(quantized)

        self._enter(SearchState.REPORT)
        quantized.state = None
        write_net_description(quantized, cfg.model_quantized)
        self.quantized_net = quantized
        report.log_summary(self.log)
        return report

    def get_integer_length(self, layer_name: str, role: Role) -> int:
        if self.integer_lengths is None:
            raise RuntimeError("The network has to be profiled first.")
        return self.integer_lengths.get(layer_name, role)

    def _enter(self, state: SearchState) -> None:
        self.log.debug(f"{self.state.name} -> {state.name}")
        self.state = state

    def _set_devices(self) -> None:
        self.devices = parse_devices(self.config.gpus,
                                     self.num_available_devices)
        if self.devices.use_gpu:
            self.log.info(f"Use GPU with device ID {self.devices.primary}")
        else:
            self.log.info("Use CPU.")
        if self.oracle is None:
            self.oracle = EvaluationOracle(self.engine_factory,
                                           devices=self.devices,
                                           loglevel=self._loglevel)

    def _load_model(self) -> NetworkDescription:
        model = self.config.model
        if isinstance(model, NetworkDescription):
            net = model.copy()
        else:
            net = read_net_description(model)
        net.state = {"phase": "TEST"}
        return net

    def _run_baseline(self, net: NetworkDescription) -> None:
        """Runs the floating point network to find the baseline accuracy and
        the maximal values per layer."""
        self.statistics, self.baseline = profile(
            net, self.config.weights, self.config.iterations, self.oracle,
            score_index=self.config.score_number)
        # The integer length is chosen such that no saturation occurs.
        self.integer_lengths = IntegerLengths.from_statistics(self.statistics)
        for name, lengths in self.integer_lengths.as_dict().items():
            self.log.info(
                f"Layer {name}, "
                f"integer length input={lengths[Role.ACTIVATION_IN]}, "
                f"integer length output={lengths[Role.ACTIVATION_OUT]}, "
                f"integer length parameters={lengths[Role.PARAMETERS]}")

    def _score_section(self,
                       net: NetworkDescription,
                       section: Section,
                       kinds: ty.FrozenSet[LayerKind],
                       roles: ty.FrozenSet[Role],
                       bitwidths: BitwidthConfig,
                       bitwidth: int) -> SectionTrial:
        trial_net = rewrite(net, kinds, roles, bitwidths,
                            self.integer_lengths)
        result = self._evaluate(trial_net)
        self.log.info(f"Dynamic fixed-point {section.value}, "
                      f"{bitwidth}-bit: {result.accuracy}")
        return SectionTrial(section=section, bitwidth=bitwidth,
                            accuracy=result.accuracy, loss=result.loss)

    def _evaluate(self, net: NetworkDescription) -> EvaluationResult:
        return self.oracle.evaluate(net, self.config.weights,
                                    self.config.iterations,
                                    score_index=self.config.score_number)
