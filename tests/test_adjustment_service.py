# tests/test_adjustment_service.py

import pytest

from gradebook.core.exceptions import ArgumentError, NotFoundError
from gradebook.models import AdjustmentType, GradeAdjustment, GradeRecord
from gradebook.services.grading.adjustment_service import effective_score

from .conftest import ENROLLMENT_ID


def record(base_grade, *adjustments):
    return GradeRecord(
        enrollment_id=ENROLLMENT_ID,
        item_id=1,
        base_grade=base_grade,
        is_overridden=False,
        adjustments=[
            GradeAdjustment(type=AdjustmentType.bonus, points=points, reason="test", is_active=active)
            for points, active in adjustments
        ]
    )


def test_effective_score_ignores_inactive_adjustments():
    assert effective_score(record(85.0, (5.0, True), (-2.0, False))) == 90.0


def test_effective_score_is_floored_at_zero_but_not_capped():
    assert effective_score(record(3.0, (-10.0, True))) == 0.0
    assert effective_score(record(98.0, (10.0, True))) == 108.0


async def test_bonus_with_inactive_penalty(db, services, gradebook_id, graded_item_id):
    grade_id = (await services.grade_service.record_grade(db, ENROLLMENT_ID, graded_item_id, 85)).id

    await services.adjustment_service.add_adjustment(db, grade_id, AdjustmentType.bonus, 5, "Extra effort", applied_by=3)
    grade = await services.adjustment_service.add_adjustment(db, grade_id, "penalty", -2, "Late")
    penalty_id = grade.adjustments[-1].id
    grade = await services.adjustment_service.toggle_adjustment(db, grade_id, penalty_id)

    assert [a.is_active for a in grade.adjustments] == [True, False]
    assert effective_score(grade) == 90.0

    result = await services.final_grade_service.compute_final_grade(db, ENROLLMENT_ID, gradebook_id)
    assert result.final_grade == pytest.approx(90.0)


async def test_toggle_round_trip_restores_score(db, services, graded_item_id):
    grade_id = (await services.grade_service.record_grade(db, ENROLLMENT_ID, graded_item_id, 72.5)).id
    grade = await services.adjustment_service.add_adjustment(db, grade_id, "curve", 3.25, "Section curve")
    adjustment_id = grade.adjustments[0].id
    before = effective_score(grade)

    grade = await services.adjustment_service.toggle_adjustment(db, grade_id, adjustment_id)
    assert effective_score(grade) == 72.5

    grade = await services.adjustment_service.toggle_adjustment(db, grade_id, adjustment_id)
    assert effective_score(grade) == before
    assert len(grade.adjustments) == 1


async def test_remove_adjustment_deletes_it(db, services, graded_item_id):
    grade_id = (await services.grade_service.record_grade(db, ENROLLMENT_ID, graded_item_id, 50)).id
    grade = await services.adjustment_service.add_adjustment(db, grade_id, "bonus", 10, "Extra")
    adjustment_id = grade.adjustments[0].id

    grade = await services.adjustment_service.remove_adjustment(db, grade_id, adjustment_id)

    assert grade.adjustments == []
    assert effective_score(grade) == 50.0
    with pytest.raises(NotFoundError):
        await services.adjustment_service.toggle_adjustment(db, grade_id, adjustment_id)


async def test_invalid_adjustments_are_rejected(db, services, graded_item_id):
    grade_id = (await services.grade_service.record_grade(db, ENROLLMENT_ID, graded_item_id, 50)).id

    with pytest.raises(ArgumentError):
        await services.adjustment_service.add_adjustment(db, grade_id, "gift", 5, "Nope")
    with pytest.raises(ArgumentError):
        await services.adjustment_service.add_adjustment(db, grade_id, "bonus", float("inf"), "Nope")
    with pytest.raises(ArgumentError):
        await services.adjustment_service.add_adjustment(db, grade_id, "bonus", 5, "  ")


async def test_missing_grade_is_not_found(db, services):
    with pytest.raises(NotFoundError):
        await services.adjustment_service.add_adjustment(db, 12345, "bonus", 1, "Ghost")
