"""Validation request and result.

A ``ValidationThresholds`` object carries the criterion the user asked for
(e.g. "validate at 1% FDR") into ``ValidationSeries`` and comes back holding
the score limit and the statistics at that limit.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from alphavalidate.constants import EstimatorMode, InputType, transform_score


@dataclass
class ValidationThresholds:
    """Validation criterion and resolved statistics.

    All rates are in percent. Only the limit matching ``input_type`` is read
    as input; every output field is overwritten by the resolving call.
    """

    # Input
    estimator_mode: EstimatorMode = EstimatorMode.PROBABILISTIC
    input_type: InputType = InputType.FDR
    user_input: float = 1.0
    classical_validation: bool = False

    # Limits (input for the active criterion, output for all)
    confidence_limit: float = -1.0
    fdr_limit: float = 0.0
    fnr_limit: float = 0.0

    # Output
    score_limit: float = 0.0
    n: float = 0.0
    n_fp: float = 0.0
    n_tp_total: float = 0.0
    none_validated: bool = False

    @classmethod
    def at_fdr(cls, fdr: float, estimator_mode: EstimatorMode = EstimatorMode.PROBABILISTIC) -> ValidationThresholds:
        return cls(estimator_mode=estimator_mode, input_type=InputType.FDR, user_input=fdr, fdr_limit=fdr)

    @classmethod
    def at_confidence(
        cls, confidence: float, estimator_mode: EstimatorMode = EstimatorMode.PROBABILISTIC
    ) -> ValidationThresholds:
        return cls(
            estimator_mode=estimator_mode,
            input_type=InputType.CONFIDENCE,
            user_input=confidence,
            confidence_limit=confidence,
        )

    @classmethod
    def at_fnr(cls, fnr: float, estimator_mode: EstimatorMode = EstimatorMode.PROBABILISTIC) -> ValidationThresholds:
        return cls(estimator_mode=estimator_mode, input_type=InputType.FNR, user_input=fnr, fnr_limit=fnr)

    @property
    def is_classical(self) -> bool:
        return self.estimator_mode == EstimatorMode.CLASSICAL

    @property
    def n_tp(self) -> float:
        """Estimated number of true positives among the validated hits."""
        return self.n - self.n_fp

    @property
    def log_score_limit(self) -> float:
        """Score limit in the log domain, for display."""
        return transform_score(self.score_limit)

    def apply_user_input(self) -> None:
        """Copy ``user_input`` into the limit of the active criterion."""
        if self.input_type == InputType.CONFIDENCE:
            self.confidence_limit = self.user_input
        elif self.input_type == InputType.FDR:
            self.fdr_limit = self.user_input
        elif self.input_type == InputType.FNR:
            self.fnr_limit = self.user_input
        else:
            raise ValueError(f"Unknown input type: {self.input_type}")

    def reset_results(self) -> None:
        """Clear the resolved statistics, keeping the request."""
        self.score_limit = 0.0
        self.n = 0.0
        self.n_fp = 0.0
        self.n_tp_total = 0.0
        self.none_validated = False

    def copy(self) -> ValidationThresholds:
        return replace(self)
