"""Threshold resolution on finalized score distributions."""

from .series import ValidationSeries
from .thresholds import ValidationThresholds

__all__ = [
    "ValidationSeries",
    "ValidationThresholds",
]
