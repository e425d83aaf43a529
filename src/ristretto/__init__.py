# Copyright (C) 2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
# See: https://spdx.org/licenses/

######
# IMPORTS

# Import everything that is relevant to users to the top level to enable
# >>> import ristretto as rt
# as the only required import for the most common quantization runs.

# NETWORK DESCRIPTIONS
from ristretto.net.description import (NetworkDescription, LayerSpec,
                                       LayerKind, Role,
                                       QuantizationParameter)
from ristretto.net.serialization import (read_net_description,
                                         write_net_description)

# QUANTIZATION
from ristretto.quantization.config import QuantizationConfig, TrimmingMode
from ristretto.quantization.oracle import (AbstractForwardEngine,
                                           AbstractEvaluationOracle,
                                           BatchOutput, EvaluationOracle,
                                           EvaluationResult)
from ristretto.quantization.quantization import Quantization
from ristretto.quantization.report import QuantizationReport
from ristretto.quantization.statistics import LayerRange

# UTILS
from ristretto.utils import float2fixed
from ristretto.utils import plots
