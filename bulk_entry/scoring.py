"""Net-score formula shared by every entry path."""
from typing import Iterable

from bulk_entry.models import SubjectResult


class InvalidConfiguration(ValueError):
    """Raised when an exam type carries a penalty divisor that is not positive."""


def check_penalty_divisor(penalty_divisor: float) -> float:
    if penalty_divisor is None or penalty_divisor <= 0:
        raise InvalidConfiguration(
            f"penalty divisor must be positive, got {penalty_divisor!r}"
        )
    return float(penalty_divisor)


def compute_net(correct: int, wrong: int, penalty_divisor: float) -> float:
    """Return ``max(0, correct - wrong / penalty_divisor)``.

    This is the single authoritative implementation of the net formula used by
    the entry grid, the Excel export and the persistence service. The result
    is not rounded; use :func:`round_net` for display.
    """
    divisor = check_penalty_divisor(penalty_divisor)
    return max(0.0, correct - wrong / divisor)


def total_net(results: Iterable[SubjectResult], penalty_divisor: float) -> float:
    return sum(
        compute_net(r.correct_count, r.wrong_count, penalty_divisor)
        for r in results
    )


def round_net(value: float, decimals: int = 2) -> float:
    return round(value, decimals)


def format_net(value: float, decimals: int = 2) -> str:
    return f"{value:.{decimals}f}"
