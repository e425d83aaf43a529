# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import logging
import typing as ty
from dataclasses import dataclass, field
from enum import Enum, unique

from ristretto.net.description import NetworkDescription, Role
from ristretto.quantization.assigner import BitwidthConfig


@unique
class Section(Enum):
    """Network sections which are quantized and scored separately."""
    CONV_WEIGHTS = "CONV weights"
    FC_WEIGHTS = "FC weights"
    ACTIVATIONS = "layer activations"


@dataclass(frozen=True)
class SectionTrial:
    section: Section
    bitwidth: int
    accuracy: float
    loss: float


@dataclass(frozen=True)
class UnderProvisioned:
    """A role of a layer whose dynamic range exceeds its bit-width."""
    layer_name: str
    role: Role
    bitwidth: int
    integer_length: int
    fractional_length: int


def find_under_provisioned(network: NetworkDescription) \
        -> ty.List[UnderProvisioned]:
    """Lists every quantized role with a negative fractional length."""
    found = []
    for layer in network:
        for role in Role:
            parameter = layer.quantization.get(role)
            if parameter is not None and parameter.fractional_length < 0:
                found.append(UnderProvisioned(
                    layer_name=layer.name,
                    role=role,
                    bitwidth=parameter.bitwidth,
                    integer_length=parameter.integer_length,
                    fractional_length=parameter.fractional_length))
    return found


@dataclass
class QuantizationReport:
    """Summary of a quantization run."""
    baseline_accuracy: float
    trials: ty.List[SectionTrial] = field(default_factory=list)
    bitwidths: BitwidthConfig = field(default_factory=BitwidthConfig)
    accuracy: ty.Optional[float] = None
    loss: ty.Optional[float] = None
    under_provisioned: ty.List[UnderProvisioned] = field(
        default_factory=list)

    def trials_of(self, section: Section) -> ty.List[SectionTrial]:
        return [trial for trial in self.trials if trial.section == section]

    def log_summary(self, log: logging.Logger) -> None:
        """Writes the human readable summary to `log` at INFO level and one
        warning per under-provisioned role."""
        log.info("------------------------------")
        log.info("Network accuracy analysis for convolutional (CONV) and "
                 "fully connected (FC) layers.")
        log.info(f"Baseline 32-bit float: {self.baseline_accuracy}")
        for section in Section:
            log.info(f"Dynamic fixed-point {section.value}:")
            for trial in self.trials_of(section):
                log.info(f"{trial.bitwidth}-bit: \t{trial.accuracy}")
        log.info("Dynamic fixed-point net:")
        log.info(f"{self.bitwidths.conv_params}-bit CONV weights,")
        log.info(f"{self.bitwidths.fc_params}-bit FC weights,")
        log.info(f"{self.bitwidths.activations}-bit layer activations:")
        log.info(f"Accuracy: {self.accuracy}")
        for entry in self.under_provisioned:
            log.warning(f"Layer {entry.layer_name}: {entry.bitwidth}-bit "
                        f"{entry.role.name} need {entry.integer_length} "
                        f"integer bits, fractional length is "
                        f"{entry.fractional_length}. Values saturate.")
        log.info("Please fine-tune.")

    def to_dict(self) -> ty.Dict[str, ty.Any]:
        return {
            "baseline_accuracy": self.baseline_accuracy,
            "trials": [{"section": trial.section.value,
                        "bitwidth": trial.bitwidth,
                        "accuracy": trial.accuracy,
                        "loss": trial.loss} for trial in self.trials],
            "bitwidths": {"conv_params": self.bitwidths.conv_params,
                          "fc_params": self.bitwidths.fc_params,
                          "activations": self.bitwidths.activations},
            "accuracy": self.accuracy,
            "loss": self.loss,
            "under_provisioned": [
                {"layer_name": entry.layer_name,
                 "role": entry.role.value,
                 "bitwidth": entry.bitwidth,
                 "integer_length": entry.integer_length,
                 "fractional_length": entry.fractional_length}
                for entry in self.under_provisioned],
        }
