"""
Score aggregation

Pure functions turning step counts and story evaluations into 0-10 scores.
The test store applies them when recomputing model-level scores.
"""

from __future__ import annotations

from model_testbench.domain.constants import EVALUATION_MAX_TOTAL, MAX_SCORE


def clamp_score(value: float, low: float = 0.0, high: float = float(MAX_SCORE)) -> float:
    """Clamp a score to [low, high]"""
    return max(low, min(high, value))


def run_score(passed: int, total: int) -> int:
    """
    Integer score of a single run

    Args:
        passed: Number of passed steps
        total: Number of steps

    Returns:
        round(passed / total * 10), 0 when the run has no steps
    """
    if total <= 0:
        return 0
    return int(round(clamp_score(passed / total * MAX_SCORE)))


def group_score(passed: int, total: int) -> float | None:
    """Pass-ratio score of a group's latest run, None when there is no data"""
    if total <= 0:
        return None
    return clamp_score(passed / total * MAX_SCORE)


def evaluation_score(totals: list[float]) -> float | None:
    """
    Evaluation-based score

    Each total is on the 0-100 scale of a multi-category story evaluation.

    Args:
        totals: Evaluation totals

    Returns:
        sum(totals) / (len(totals) * 100) * 10, None when there are no totals
    """
    if not totals:
        return None
    return clamp_score(sum(totals) / (len(totals) * EVALUATION_MAX_TOTAL) * MAX_SCORE)


# Writer scores use the same formula over every evaluation of the model's stories
writer_score = evaluation_score


def overall_score(group_scores: list[float | None]) -> int:
    """
    Rounded mean of the per-group scores

    Groups without data (None) are skipped; with no data at all the
    score is 0.
    """
    scores = [s for s in group_scores if s is not None]
    if not scores:
        return 0
    return int(round(sum(scores) / len(scores)))
