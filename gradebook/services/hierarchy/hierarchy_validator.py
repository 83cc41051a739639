"""
Weight invariants of a gradebook hierarchy.

All checks work on a `GradebookTree`, so they can run against the in-flight
state of a transaction (before commit) as well as against plain test data.

Rules:
- sibling weights: in every scope with at least one baseline participant,
  explicit weights total 100 (or at most 100 when auto-weighted siblings
  exist to absorb the remainder);
- a category with no non-extra-credit item beneath it carries no weight
  (NULL or 0);
- an extra-credit node needs an explicit weight;
- a category with children cannot be deleted.
"""

import logging
from typing import Optional

from gradebook.core.exceptions import ArgumentError, InvariantViolationError, NotEmptyError
from gradebook.utils.gradebook_tree import (
    CATEGORY,
    GradebookTree,
    Node,
    specified_baseline_weight,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.01


def validate_weight_value(weight, field_name: str = "weight") -> Optional[float]:
    """Normalize a weight input to a float in [0, 100] or None"""
    if weight is None:
        return None
    if isinstance(weight, bool):
        raise ArgumentError(f"{field_name} must be a number or None")
    try:
        weight = float(weight)
    except (TypeError, ValueError):
        raise ArgumentError(f"{field_name} must be a number or None")
    if weight != weight or weight in (float("inf"), float("-inf")):
        raise ArgumentError(f"{field_name} must be a finite number")
    if weight < 0 or weight > 100:
        raise ArgumentError(f"{field_name} must be between 0 and 100")
    return weight


def validate_sibling_weights(tree: GradebookTree, scope_id: Optional[int], tolerance: float = DEFAULT_TOLERANCE) -> None:
    """Check that baseline weights of one scope's direct children total 100"""
    specified, explicit, auto = specified_baseline_weight(tree, scope_id)
    if explicit == 0 and auto == 0:
        # only extra credit or unweighted categories without baseline items here
        return

    label = tree.scope_label(scope_id)
    if auto:
        if specified > 100 + tolerance:
            raise InvariantViolationError(
                f"Total specified weight at {label} would be {specified:.2f}%. "
                f"When auto-weighted children exist, specified weights must not exceed 100%.",
                rule=InvariantViolationError.BASELINE_WEIGHT_SUM,
                scope=label,
                details={"specified_weight": specified, "auto_weighted": auto}
            )
    elif abs(specified - 100) > tolerance:
        raise InvariantViolationError(
            f"Total weight at {label} would be {specified:.2f}%. Total must equal exactly 100%.",
            rule=InvariantViolationError.BASELINE_WEIGHT_SUM,
            scope=label,
            details={"specified_weight": specified}
        )


def validate_node(tree: GradebookTree, node: Node) -> None:
    """Per-node rules: categories without baseline items carry no weight, extra credit needs a weight"""
    if node.kind == CATEGORY:
        label = tree.scope_label(node.id)
        if node.weight and node.is_empty:
            raise InvariantViolationError(
                f"Category {label} has no children; its weight must be empty or 0, got {node.weight:.2f}%",
                rule=InvariantViolationError.EMPTY_CATEGORY_WEIGHT,
                scope=label
            )
        if node.weight and not node.extra_credit and not tree.has_baseline_items(node.id):
            raise InvariantViolationError(
                f"Category {label} holds no non-extra-credit items; it must be auto-weighted "
                f"(empty or 0), got {node.weight:.2f}%",
                rule=InvariantViolationError.EMPTY_CATEGORY_WEIGHT,
                scope=label
            )
    else:
        label = f"{tree.scope_label(node.category_id)} > {node.name}"

    if node.extra_credit and node.weight is None:
        raise InvariantViolationError(
            f"{node.kind.capitalize()} {label} is marked extra credit but has no weight",
            rule=InvariantViolationError.EXTRA_CREDIT_REQUIRES_WEIGHT,
            scope=label
        )


def validate_structure(tree: GradebookTree) -> None:
    if tree.orphans:
        kind, node_id = tree.orphans[0]
        raise InvariantViolationError(
            f"{kind.capitalize()} {node_id} references a parent category that does not exist",
            rule=InvariantViolationError.HIERARCHY_STRUCTURE,
            details={"orphans": list(tree.orphans)}
        )
    cycle = tree.find_cycle()
    if cycle:
        raise InvariantViolationError(
            f"Categories {cycle} form a parent cycle",
            rule=InvariantViolationError.HIERARCHY_STRUCTURE,
            details={"cycle": cycle}
        )


def ensure_deletable(tree: GradebookTree, category_id: int) -> None:
    """Refuse to delete a category that still owns categories or items"""
    category = tree.categories[category_id]
    if not category.is_empty:
        label = tree.scope_label(category_id)
        raise NotEmptyError(
            f"Category {label} still has {len(category.category_ids)} categories and "
            f"{len(category.item_ids)} items; remove them first",
            scope=label,
            details={"category_ids": list(category.category_ids), "item_ids": list(category.item_ids)}
        )


def validate_hierarchy(tree: GradebookTree, tolerance: float = DEFAULT_TOLERANCE) -> None:
    """Run every rule over the whole tree; raises the first violation found"""
    validate_structure(tree)

    for category in tree.categories.values():
        validate_node(tree, category)
    for item in tree.items.values():
        validate_node(tree, item)

    for scope_id in tree.scopes():
        validate_sibling_weights(tree, scope_id, tolerance)

    logger.debug(f"Hierarchy of gradebook {tree.gradebook_id} passed validation")
