"""NAPWATCH — Scoring Engine.

Turns a platform's discrepancy list into a 0-100 score and a status,
and aggregates platform scores into the overall report score.
"""

from typing import Iterable, List

from app.core.logging import get_logger
from app.models.audit_models import Discrepancy, PlatformStatus, Severity

logger = get_logger("analyzer.scoring")

MAX_SCORE = 100
MIN_SCORE = 0

SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 25,
    Severity.MAJOR: 15,
    Severity.MINOR: 5,
}


def clamp_score(value: float, context: str = "") -> int:
    """Round and clamp into [0, 100]. Out-of-range input is logged."""
    score = int(round(value))
    if score < MIN_SCORE or score > MAX_SCORE:
        logger.error(f"Score {value} out of range{f' for {context}' if context else ''}; clamping")
        score = max(MIN_SCORE, min(MAX_SCORE, score))
    return score


def compute_score(discrepancies: Iterable[Discrepancy]) -> int:
    """100 minus the severity weight of every discrepancy, floored at 0."""
    score = MAX_SCORE
    for d in discrepancies:
        score -= SEVERITY_WEIGHTS.get(d.severity, 0)
    return max(MIN_SCORE, score)


def classify_status(discrepancies: List[Discrepancy]) -> PlatformStatus:
    if not discrepancies:
        return PlatformStatus.CONSISTENT
    return PlatformStatus.INCONSISTENT


def overall_score(platform_scores: List[int]) -> int:
    """Rounded mean of platform scores; 0 when no platforms were audited.

    Halves round up (87.5 -> 88), not to even.
    """
    if not platform_scores:
        return 0
    mean = sum(platform_scores) / len(platform_scores)
    return clamp_score(int(mean + 0.5), "overall")
