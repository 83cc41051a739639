# tests/test_aggregation_engine.py

import pytest

from gradebook.core.exceptions import ArgumentError, InvariantViolationError
from gradebook.services.aggregation.aggregation_engine import ItemScore, compute_final_grade
from gradebook.utils.gradebook_tree import CategoryNode, GradebookTree, ItemNode


def scores(**by_item):
    return {
        int(item_id.lstrip("i")): ItemScore(item_id=int(item_id.lstrip("i")), base_grade=score, effective_score=score)
        for item_id, score in by_item.items()
    }


def test_nested_weights_compose_as_fraction_of_parent(scenario_tree):
    result = compute_final_grade(scenario_tree, scores(i10=100.0, i20=100.0), enrollment_id=7)

    assert result.total_weight == pytest.approx(70.0)
    assert result.final_grade == pytest.approx(100.0)
    assert result.graded_items == 2
    assert result.enrollment_id == 7

    homework = result.breakdown[1]
    assert homework.kind == "category"
    assert homework.overall_weight == pytest.approx(60.0)
    assert homework.children[0].overall_weight == pytest.approx(30.0)


def test_extra_credit_adds_on_top_of_baseline():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=1, name="Midterm", weight=50.0),
            ItemNode(id=2, name="Final", weight=50.0),
            ItemNode(id=3, name="Bonus", weight=15.0, extra_credit=True),
        ]
    )

    result = compute_final_grade(tree, scores(i1=70.0, i2=70.0, i3=80.0))

    assert result.final_grade == pytest.approx(82.0)
    assert result.total_weight == pytest.approx(115.0)


def test_nothing_graded_is_zero_not_an_error(scenario_tree):
    result = compute_final_grade(scenario_tree, {})

    assert result.final_grade == 0
    assert result.graded_items == 0
    assert result.total_weight == 0
    assert all(not node.graded for node in result.breakdown)
    assert result.breakdown[0].percentage is None


def test_ungraded_baseline_children_are_skipped_not_zeroed():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=1, name="Midterm", weight=40.0),
            ItemNode(id=2, name="Final", weight=60.0),
        ]
    )

    result = compute_final_grade(tree, {
        1: ItemScore(item_id=1, base_grade=80.0, effective_score=80.0),
        2: ItemScore(item_id=2),
    })

    assert result.final_grade == pytest.approx(80.0)
    assert result.total_weight == pytest.approx(40.0)
    assert result.graded_items == 1


def test_percentage_uses_max_grade():
    tree = GradebookTree(1, items=[ItemNode(id=1, name="Essay", weight=100.0, max_grade=50.0)])

    result = compute_final_grade(tree, scores(i1=45.0))

    assert result.final_grade == pytest.approx(90.0)
    assert result.breakdown[0].percentage == pytest.approx(90.0)


def test_scores_above_max_grade_are_not_capped():
    tree = GradebookTree(1, items=[ItemNode(id=1, name="Essay", weight=100.0, max_grade=20.0)])

    result = compute_final_grade(tree, scores(i1=22.0))

    assert result.final_grade == pytest.approx(110.0)


def test_auto_weighted_items_split_the_remainder():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=1, name="Final", weight=50.0),
            ItemNode(id=2, name="Quiz 1"),
            ItemNode(id=3, name="Quiz 2"),
        ]
    )

    result = compute_final_grade(tree, scores(i1=60.0, i2=100.0, i3=80.0))

    # 50 * 60 + 25 * 100 + 25 * 80
    assert result.final_grade == pytest.approx(75.0)
    assert [node.resolved_weight for node in result.breakdown] == [50.0, 25.0, 25.0]


def test_extra_credit_category_contributes_its_own_percentage():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=5, name="Challenges", weight=10.0, extra_credit=True)],
        items=[
            ItemNode(id=1, name="Final", weight=100.0),
            ItemNode(id=2, name="Puzzle", category_id=5),
        ]
    )

    result = compute_final_grade(tree, scores(i1=50.0, i2=100.0))

    assert result.final_grade == pytest.approx(60.0)


def test_graded_item_with_non_positive_max_grade_raises():
    tree = GradebookTree(1, items=[ItemNode(id=1, name="Broken", weight=100.0, max_grade=0.0)])

    with pytest.raises(ArgumentError):
        compute_final_grade(tree, scores(i1=10.0))


def test_overweighted_scope_raises():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=1, name="Midterm", weight=70.0),
            ItemNode(id=2, name="Final", weight=70.0),
        ]
    )

    with pytest.raises(InvariantViolationError):
        compute_final_grade(tree, scores(i1=80.0))


def test_orphaned_item_raises():
    tree = GradebookTree(1, items=[ItemNode(id=1, name="Lost", category_id=42, weight=100.0)])

    with pytest.raises(InvariantViolationError):
        compute_final_grade(tree, {})


def test_grading_extra_credit_in_unweighted_category_never_lowers_the_grade():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=5, name="Bonus pool")],
        items=[
            ItemNode(id=1, name="Final", weight=100.0),
            ItemNode(id=2, name="Puzzle", category_id=5, weight=10.0, extra_credit=True),
        ]
    )

    before = compute_final_grade(tree, scores(i1=100.0))
    after = compute_final_grade(tree, scores(i1=100.0, i2=100.0))

    assert before.final_grade == pytest.approx(100.0)
    assert after.final_grade == pytest.approx(100.0)
    bonus_pool = after.breakdown[1]
    assert bonus_pool.resolved_weight == 0.0
    assert bonus_pool.children[0].overall_weight == 0.0
