"""
Eligibility evaluation for placement drives.

Pure functions, no database access:
- evaluate: every criterion a student fails, not just the first
- skill_match_score: 0-100 ranking score from the drive's required skills

Required skills never decide eligibility; they only order candidate lists.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List


@dataclass
class EligibilityResult:
    eligible: bool
    reasons: List[str] = field(default_factory=list)


def evaluate(drive, student, now: datetime) -> EligibilityResult:
    """
    Check a student against a drive's criteria.

    Criteria:
    1. student.cgpa >= drive.min_cgpa
    2. student.backlogs <= drive.max_backlogs
    3. drive.eligible_branches is empty or contains student.branch
    4. drive.eligible_semesters is empty or contains student.semester
    5. student is not already placed
    6. now <= drive.registration_deadline

    Args:
        drive: PlacementDrive (or any object with the same attributes)
        student: Student (or any object with the same attributes)
        now: Evaluation time

    Returns:
        EligibilityResult with one reason per failed criterion
    """
    reasons = []

    if student.cgpa < drive.min_cgpa:
        reasons.append(
            f"CGPA requirement not met. Required: {drive.min_cgpa}, "
            f"Current: {student.cgpa}"
        )

    if student.backlogs > drive.max_backlogs:
        reasons.append(
            f"Backlogs exceed limit. Maximum allowed: {drive.max_backlogs}, "
            f"Current: {student.backlogs}"
        )

    branches = drive.eligible_branches or []
    if branches and student.branch not in branches:
        reasons.append(f"Branch not eligible. Eligible branches: {', '.join(branches)}")

    semesters = drive.eligible_semesters or []
    if semesters and student.semester not in semesters:
        reasons.append(
            f"Semester not eligible. Eligible semesters: {', '.join(str(s) for s in semesters)}"
        )

    if student.is_placed:
        reasons.append("Student is already placed")

    if now > drive.registration_deadline:
        reasons.append("Registration deadline has passed")

    return EligibilityResult(eligible=not reasons, reasons=reasons)


def skill_match_score(required_skills: Iterable[str], student_skills: Iterable[str]) -> int:
    """
    Percentage of required skills the student has, rounded half up.

    A required skill counts as matched when it appears, case-insensitively,
    inside any one of the student's skills ("python" matches "Python 3").
    """
    required = [skill for skill in (required_skills or []) if skill]
    if not required:
        return 0

    owned = [skill.lower() for skill in (student_skills or [])]
    matched = sum(
        1 for skill in required
        if any(skill.lower() in own for own in owned)
    )
    return int(math.floor(matched / len(required) * 100 + 0.5))
