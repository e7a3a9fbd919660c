"""Target/decoy hit counter for a single score value."""

from __future__ import annotations

import threading


class ScorePoint:
    """Target and decoy counts observed at one score, with its estimated PEP.

    Counter updates are serialized by a per-point lock so that several scoring
    threads can submit hits at the same score without losing updates.

    Parameters
    ----------
    score : float
        The score this point is keyed by

    Attributes
    ----------
    score : float
        The score (immutable)
    p : float or None
        Posterior error probability, ``None`` until estimated
    """

    __slots__ = ("score", "_n_target", "_n_decoy", "p", "_lock")

    def __init__(self, score: float):
        self.score = score
        self._n_target = 0
        self._n_decoy = 0
        self.p: float | None = None
        self._lock = threading.Lock()

    @property
    def n_target(self) -> int:
        return self._n_target

    @property
    def n_decoy(self) -> int:
        return self._n_decoy

    def increase_target(self) -> None:
        with self._lock:
            self._n_target += 1

    def increase_decoy(self) -> None:
        with self._lock:
            self._n_decoy += 1

    def decrease_target(self) -> None:
        """Remove one target hit.

        Raises
        ------
        ValueError
            If the point holds no target hit
        """
        with self._lock:
            if self._n_target == 0:
                raise ValueError(f"No target hit to remove at score {self.score}")
            self._n_target -= 1

    def decrease_decoy(self) -> None:
        """Remove one decoy hit.

        Raises
        ------
        ValueError
            If the point holds no decoy hit
        """
        with self._lock:
            if self._n_decoy == 0:
                raise ValueError(f"No decoy hit to remove at score {self.score}")
            self._n_decoy -= 1

    def is_empty(self) -> bool:
        return self._n_target == 0 and self._n_decoy == 0

    def __repr__(self) -> str:
        return (
            f"ScorePoint(score={self.score}, n_target={self._n_target}, "
            f"n_decoy={self._n_decoy}, p={self.p})"
        )
