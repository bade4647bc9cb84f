"""Local score counter for a puzzle session."""


class ScoreLedger:
    """Authoritative in-session score, floored at zero.

    The ranking store only mirrors this value; a failed sync never changes it.
    """

    def __init__(self, score: int = 0):
        if score < 0:
            raise ValueError(f"Score cannot be negative: {score}")
        self._score = score

    @property
    def score(self) -> int:
        return self._score

    def apply(self, delta: int) -> int:
        """Add ``delta`` (positive or negative) and return the new score."""
        self._score = max(0, self._score + delta)
        return self._score

    def reset(self, score: int = 0) -> int:
        """Adopt a score restored from a snapshot or the ranking store."""
        self._score = max(0, int(score))
        return self._score
