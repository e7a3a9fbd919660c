"""AlphaValidate - Target-decoy validation statistics for proteomics.

This library estimates posterior error probabilities from target/decoy
competition and resolves confidence, FDR or FNR criteria into score limits,
for PSMs, peptides and proteins alike.
"""

__version__ = "0.1.0"

from alphavalidate import constants
from alphavalidate import scoring
from alphavalidate import validation
from alphavalidate.constants import EstimatorMode, InputType

__all__ = [
    "constants",
    "scoring",
    "validation",
    "EstimatorMode",
    "InputType",
]
