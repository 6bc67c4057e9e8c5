"""
Read-only projections over drive state: selection statistics for results
and summary figures for eligible-candidate lists.
"""

from typing import Iterable

from app.models.drive_result import ResultStatus


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


def _average(values: list) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def result_statistics(total_registered: int, results: Iterable) -> dict:
    """
    Outcome counts for a drive.

    ``pending`` is registered students without a result; ``selection_rate``
    is selected / registered as a percentage with two decimals.
    """
    statuses = [result.status for result in results]
    selected = statuses.count(ResultStatus.SELECTED.value)

    return {
        "total_registered": total_registered,
        "total_results": len(statuses),
        "selected": selected,
        "rejected": statuses.count(ResultStatus.REJECTED.value),
        "waitlisted": statuses.count(ResultStatus.WAITLISTED.value),
        "pending": max(total_registered - len(statuses), 0),
        "selection_rate": _percentage(selected, total_registered),
    }


def eligible_statistics(total_eligible: int, candidates: list[dict]) -> dict:
    """Summary of one page of eligible candidates."""
    registered = sum(1 for candidate in candidates if candidate["is_registered"])
    return {
        "total_eligible": total_eligible,
        "registered_count": registered,
        "unregistered_count": len(candidates) - registered,
        "average_cgpa": _average([candidate["cgpa"] for candidate in candidates]),
        "average_skill_match": _average([candidate["skill_match_score"] for candidate in candidates]),
    }


def rank_candidates(candidates: list[dict]) -> list[dict]:
    """Best skill match first, CGPA breaks ties."""
    return sorted(
        candidates,
        key=lambda candidate: (-candidate["skill_match_score"], -candidate["cgpa"])
    )
