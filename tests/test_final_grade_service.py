# tests/test_final_grade_service.py

import pytest

from gradebook.core.exceptions import NotFoundError

from .conftest import ENROLLMENT_ID, OTHER_ENROLLMENT_ID, STRANGER_ENROLLMENT_ID


async def build_scenario(db, services, gradebook_id):
    """Homework 60 (HW 1 at 50, HW 2 auto), a root Final at 40, and a 15 point extra-credit item"""
    structure = await services.hierarchy_service.mutate_hierarchy(db, gradebook_id, [
        {"op": "create_category", "key": "hw", "name": "Homework", "weight": 60},
        {"op": "create_item", "key": "hw1", "category_key": "hw", "name": "HW 1", "weight": 50},
        {"op": "create_item", "category_key": "hw", "name": "HW 2"},
        {"op": "create_item", "name": "Final", "weight": 40},
        {"op": "create_item", "name": "Bonus", "weight": 15, "extra_credit": True},
    ])
    final, bonus, homework = structure.items
    return {
        "hw1": homework.children[0].id,
        "hw2": homework.children[1].id,
        "final": final.id,
        "bonus": bonus.id,
    }


async def test_nested_weights_through_the_store(db, services, gradebook_id):
    ids = await build_scenario(db, services, gradebook_id)
    await services.grade_service.record_grade(db, ENROLLMENT_ID, ids["hw1"], 100)
    await services.grade_service.record_grade(db, ENROLLMENT_ID, ids["final"], 100)

    result = await services.final_grade_service.compute_final_grade(db, ENROLLMENT_ID, gradebook_id)

    assert result.total_weight == pytest.approx(70.0)
    assert result.final_grade == pytest.approx(100.0)
    assert result.graded_items == 2
    assert result.gradebook_id == gradebook_id


async def test_extra_credit_through_the_store(db, services, gradebook_id):
    ids = await build_scenario(db, services, gradebook_id)
    await services.grade_service.bulk_record_grades(db, ENROLLMENT_ID, [
        {"item_id": ids["hw1"], "base_grade": 70},
        {"item_id": ids["hw2"], "base_grade": 70},
        {"item_id": ids["final"], "base_grade": 70},
        {"item_id": ids["bonus"], "base_grade": 80},
    ])

    result = await services.final_grade_service.compute_final_grade(db, ENROLLMENT_ID, gradebook_id)

    assert result.final_grade == pytest.approx(82.0)
    assert result.graded_items == 4


async def test_nothing_graded_returns_zero(db, services, gradebook_id):
    await build_scenario(db, services, gradebook_id)

    result = await services.final_grade_service.compute_final_grade(db, ENROLLMENT_ID, gradebook_id)

    assert result.final_grade == 0
    assert result.graded_items == 0
    assert result.total_weight == 0


async def test_ungraded_records_do_not_count(db, services, gradebook_id):
    ids = await build_scenario(db, services, gradebook_id)
    await services.grade_service.record_grade(db, ENROLLMENT_ID, ids["final"])

    result = await services.final_grade_service.compute_final_grade(db, ENROLLMENT_ID, gradebook_id)

    assert result.graded_items == 0


async def test_unknown_enrollment_or_gradebook_is_not_found(db, services, gradebook_id):
    with pytest.raises(NotFoundError):
        await services.final_grade_service.compute_final_grade(db, STRANGER_ENROLLMENT_ID, gradebook_id)
    with pytest.raises(NotFoundError):
        await services.final_grade_service.compute_final_grade(db, ENROLLMENT_ID, 404)


async def test_roster_is_computed_per_enrollment(db, session_maker, services, gradebook_id):
    ids = await build_scenario(db, services, gradebook_id)
    await services.grade_service.record_grade(db, ENROLLMENT_ID, ids["final"], 90)
    await services.grade_service.record_grade(db, OTHER_ENROLLMENT_ID, ids["final"], 60)
    await services.grade_service.record_grade(db, OTHER_ENROLLMENT_ID, ids["hw1"], 30)

    results = await services.final_grade_service.compute_roster_final_grades(
        session_maker, [ENROLLMENT_ID, OTHER_ENROLLMENT_ID], gradebook_id
    )

    assert set(results) == {ENROLLMENT_ID, OTHER_ENROLLMENT_ID}
    assert results[ENROLLMENT_ID].final_grade == pytest.approx(90.0)
    # 30 overall at 30% and 40 overall at 60%
    assert results[OTHER_ENROLLMENT_ID].final_grade == pytest.approx((60 * 30 + 40 * 60) / 100)
    assert results[OTHER_ENROLLMENT_ID].total_weight == pytest.approx(70.0)
