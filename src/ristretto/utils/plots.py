# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

import typing as ty
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import FigureBase

from ristretto.quantization.report import QuantizationReport

_DEFAULT_FIGSIZE = (10, 5)


def plot_section_accuracies(
    report: QuantizationReport,
    fig: ty.Optional[FigureBase] = None,
    figsize: ty.Optional[ty.Tuple[int, int]] = None,
    color: ty.Any = "b",
    baseline_color: ty.Any = "r",
    ylabel: str = "Accuracy",
) -> FigureBase:
    """Generate a bar plot of the accuracy of every section trial and of the
    combined network, with the floating point baseline as horizontal line.

    Parameters
    ----------
    report : QuantizationReport
        Report of a quantization run.
    fig: FigureBase, optional
        Active matplotlib figure to use. Passing None will create a new one.
        Cannot be used together with figsize.
    figsize: (float, float), optional
        Width, height in inches to use to create new figure. Cannot be used
        together with fig.
    color: any
        Color of the bars.
    baseline_color: any
        Color of the baseline.
    ylabel: str
        The label of the y axis. Default is 'Accuracy'.
    """
    if fig is not None and figsize is not None:
        raise ValueError("Must use at most one of the following: fig, "
                         "figsize.")

    labels = [f"{trial.section.value}\n{trial.bitwidth}-bit"
              for trial in report.trials]
    accuracies = [trial.accuracy for trial in report.trials]
    if report.accuracy is not None:
        labels.append("combined")
        accuracies.append(report.accuracy)

    if fig is None:
        fig = plt.figure(figsize=figsize or _DEFAULT_FIGSIZE)
    ax = fig.add_subplot()

    positions = np.arange(len(accuracies))
    ax.bar(positions, accuracies, color=color)
    ax.axhline(report.baseline_accuracy, color=baseline_color,
               linestyle="--", label="32-bit float")
    ax.set_xticks(positions)
    ax.set_xticklabels(labels)
    ax.set_ylabel(ylabel)
    ax.legend()

    return fig
