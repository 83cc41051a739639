# tests/test_hierarchy_validator.py

import pytest

from gradebook.core.exceptions import ArgumentError, InvariantViolationError, NotEmptyError
from gradebook.services.hierarchy.hierarchy_validator import (
    ensure_deletable,
    validate_hierarchy,
    validate_sibling_weights,
    validate_weight_value,
)
from gradebook.utils.gradebook_tree import CategoryNode, GradebookTree, ItemNode


def test_weight_value_bounds():
    assert validate_weight_value(None) is None
    assert validate_weight_value(25) == 25.0

    for bad in (-1, 100.5, float("nan"), "heavy", True):
        with pytest.raises(ArgumentError):
            validate_weight_value(bad)


def test_baseline_weights_must_total_100():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=10, name="Midterm", weight=40.0),
            ItemNode(id=11, name="Final", weight=50.0),
        ]
    )

    with pytest.raises(InvariantViolationError) as error:
        validate_sibling_weights(tree, None)

    assert error.value.rule == InvariantViolationError.BASELINE_WEIGHT_SUM
    assert error.value.scope == "root"


def test_weights_within_tolerance_pass():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=10, name="A", weight=33.33),
            ItemNode(id=11, name="B", weight=33.33),
            ItemNode(id=12, name="C", weight=33.34),
        ]
    )

    validate_sibling_weights(tree, None)


def test_extra_credit_is_excluded_from_baseline_sum():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=10, name="Coursework", weight=100.0),
            ItemNode(id=11, name="Bonus", weight=15.0, extra_credit=True),
        ]
    )

    validate_hierarchy(tree)


def test_scope_with_only_extra_credit_is_exempt():
    tree = GradebookTree(1, items=[ItemNode(id=10, name="Bonus", weight=5.0, extra_credit=True)])

    validate_sibling_weights(tree, None)


def test_auto_weights_may_not_be_overcommitted():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=10, name="Final", weight=80.0),
            ItemNode(id=11, name="Midterm", weight=30.0),
            ItemNode(id=12, name="Quiz"),
        ]
    )

    with pytest.raises(InvariantViolationError):
        validate_sibling_weights(tree, None)


def test_empty_category_cannot_carry_weight():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Projects", weight=20.0)],
        items=[ItemNode(id=10, name="Final", weight=80.0)]
    )

    with pytest.raises(ArgumentError) as error:
        validate_hierarchy(tree)

    assert error.value.error_code == InvariantViolationError.EMPTY_CATEGORY_WEIGHT


def test_extra_credit_requires_weight():
    tree = GradebookTree(
        1,
        items=[
            ItemNode(id=10, name="Final", weight=100.0),
            ItemNode(id=11, name="Bonus", extra_credit=True),
        ]
    )

    with pytest.raises(InvariantViolationError) as error:
        validate_hierarchy(tree)

    assert error.value.rule == InvariantViolationError.EXTRA_CREDIT_REQUIRES_WEIGHT
    assert error.value.scope == "root > Bonus"


def test_nested_scope_is_checked():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Homework", weight=100.0)],
        items=[
            ItemNode(id=10, name="HW 1", category_id=1, weight=50.0),
            ItemNode(id=11, name="HW 2", category_id=1, weight=20.0),
        ]
    )

    with pytest.raises(InvariantViolationError) as error:
        validate_hierarchy(tree)

    assert error.value.scope == "root > Homework"


def test_cycle_is_a_structural_violation():
    tree = GradebookTree(
        1,
        categories=[
            CategoryNode(id=1, name="A", parent_id=2),
            CategoryNode(id=2, name="B", parent_id=1),
        ]
    )

    with pytest.raises(InvariantViolationError) as error:
        validate_hierarchy(tree)

    assert error.value.rule == InvariantViolationError.HIERARCHY_STRUCTURE


def test_category_with_children_is_not_deletable():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Homework"), CategoryNode(id=2, name="Empty")],
        items=[ItemNode(id=10, name="HW 1", category_id=1)]
    )

    with pytest.raises(NotEmptyError):
        ensure_deletable(tree, 1)
    ensure_deletable(tree, 2)


def test_unweighted_category_of_extra_credit_only_is_valid():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Bonus pool")],
        items=[
            ItemNode(id=10, name="Final", weight=100.0),
            ItemNode(id=11, name="Puzzle", category_id=1, weight=10.0, extra_credit=True),
        ]
    )

    validate_hierarchy(tree)


def test_category_of_extra_credit_only_cannot_carry_weight():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Bonus pool", weight=40.0)],
        items=[
            ItemNode(id=10, name="Final", weight=60.0),
            ItemNode(id=11, name="Puzzle", category_id=1, weight=10.0, extra_credit=True),
        ]
    )

    with pytest.raises(InvariantViolationError) as error:
        validate_hierarchy(tree)

    assert error.value.rule == InvariantViolationError.EMPTY_CATEGORY_WEIGHT
    assert error.value.scope == "root > Bonus pool"


def test_extra_credit_category_keeps_its_weight_without_baseline_items():
    tree = GradebookTree(
        1,
        categories=[CategoryNode(id=1, name="Challenges", weight=10.0, extra_credit=True)],
        items=[
            ItemNode(id=10, name="Final", weight=100.0),
            ItemNode(id=11, name="Puzzle", category_id=1, weight=5.0, extra_credit=True),
        ]
    )

    validate_hierarchy(tree)
