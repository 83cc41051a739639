"""
Final grade of one enrollment, reduced bottom-up over a gradebook tree.

Per scope (the root, or one category):
- each child yields a percentage and a graded flag; an item is graded when
  its record has an effective score, a category when anything beneath it is;
- graded baseline children form a weighted mean over their resolved weights,
  renormalized over the graded subset only (ungraded children are skipped,
  not counted as zero);
- graded extra-credit children add weight x percentage / 100 on top,
  unnormalized.

The engine is pure: it reads a `GradebookTree` plus a mapping of item id to
`ItemScore` and never touches the database. No rounding is applied.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from gradebook import models
from gradebook.core.exceptions import ArgumentError, InvariantViolationError
from gradebook.schemas.final_grade import FinalGradeResult, GradeBreakdownNode
from gradebook.services.grading.adjustment_service import effective_score
from gradebook.services.hierarchy.hierarchy_validator import DEFAULT_TOLERANCE, validate_structure
from gradebook.utils.gradebook_tree import (
    CATEGORY,
    CategoryNode,
    GradebookTree,
    ItemNode,
    resolve_scope_weights,
    specified_baseline_weight,
)

logger = logging.getLogger(__name__)


@dataclass
class ItemScore:
    item_id: int
    base_grade: Optional[float] = None
    # None while ungraded
    effective_score: Optional[float] = None

    @property
    def graded(self) -> bool:
        return self.effective_score is not None

    @classmethod
    def from_record(cls, grade: models.GradeRecord) -> "ItemScore":
        return cls(
            item_id=grade.item_id,
            base_grade=grade.base_grade,
            effective_score=effective_score(grade)
        )


@dataclass
class _Totals:
    total_weight: float = 0.0
    graded_items: int = 0


class AggregationEngine:
    def __init__(self, tolerance: float = DEFAULT_TOLERANCE):
        self.tolerance = tolerance

    def compute(
        self,
        tree: GradebookTree,
        scores: Mapping[int, ItemScore],
        enrollment_id: Optional[int] = None
    ) -> FinalGradeResult:
        # only a hierarchy that bypassed validation fails here
        validate_structure(tree)

        totals = _Totals()
        percentage, _, breakdown = self._reduce_scope(tree, None, scores, 1.0, totals)

        logger.debug(
            f"Final grade of enrollment {enrollment_id} in gradebook {tree.gradebook_id}: "
            f"{percentage} over {totals.graded_items} graded item(s)"
        )
        return FinalGradeResult(
            enrollment_id=enrollment_id,
            gradebook_id=tree.gradebook_id,
            final_grade=percentage,
            total_weight=totals.total_weight,
            graded_items=totals.graded_items,
            breakdown=breakdown
        )

    def _check_scope(self, tree: GradebookTree, scope_id: Optional[int]) -> None:
        specified, _, _ = specified_baseline_weight(tree, scope_id)
        if specified > 100 + self.tolerance:
            label = tree.scope_label(scope_id)
            raise InvariantViolationError(
                f"Baseline weights at {label} total {specified:.2f}%, more than 100%",
                rule=InvariantViolationError.BASELINE_WEIGHT_SUM,
                scope=label,
                details={"specified_weight": specified}
            )

    def _reduce_scope(
        self,
        tree: GradebookTree,
        scope_id: Optional[int],
        scores: Mapping[int, ItemScore],
        parent_factor: float,
        totals: _Totals
    ) -> Tuple[float, bool, List[GradeBreakdownNode]]:
        """(percentage, graded, breakdown nodes) of one scope"""
        self._check_scope(tree, scope_id)
        resolved = resolve_scope_weights(tree, scope_id)

        baseline_weight = 0.0
        baseline_points = 0.0
        extra_points = 0.0
        extra_graded = False
        nodes: List[GradeBreakdownNode] = []

        for child in tree.children(scope_id):
            weight = resolved[child.key]
            factor = parent_factor * weight / 100

            if child.kind == CATEGORY:
                node = self._reduce_category(tree, child, scores, weight, factor, totals)
            else:
                node = self._reduce_item(child, scores.get(child.id), weight, factor, totals)
            nodes.append(node)

            if not node.graded:
                continue
            if child.extra_credit:
                extra_points += weight * node.percentage / 100
                extra_graded = True
            else:
                baseline_weight += weight
                baseline_points += weight * node.percentage

        baseline = baseline_points / baseline_weight if baseline_weight > 0 else 0.0
        graded = baseline_weight > 0 or extra_graded
        return baseline + extra_points, graded, nodes

    def _reduce_category(
        self,
        tree: GradebookTree,
        category: CategoryNode,
        scores: Mapping[int, ItemScore],
        weight: float,
        factor: float,
        totals: _Totals
    ) -> GradeBreakdownNode:
        percentage, graded, children = self._reduce_scope(tree, category.id, scores, factor, totals)
        return GradeBreakdownNode(
            kind=CATEGORY,
            id=category.id,
            name=category.name,
            weight=category.weight,
            resolved_weight=weight,
            overall_weight=factor * 100,
            extra_credit=category.extra_credit,
            graded=graded,
            percentage=percentage if graded else None,
            children=children
        )

    def _reduce_item(
        self,
        item: ItemNode,
        score: Optional[ItemScore],
        weight: float,
        factor: float,
        totals: _Totals
    ) -> GradeBreakdownNode:
        graded = score is not None and score.graded
        percentage = None
        if graded:
            if item.max_grade is None or item.max_grade <= 0:
                raise ArgumentError(
                    f"Item {item.name} has a non-positive max grade ({item.max_grade})",
                    details={"item_id": item.id}
                )
            percentage = score.effective_score / item.max_grade * 100
            totals.total_weight += factor * 100
            totals.graded_items += 1

        return GradeBreakdownNode(
            kind="item",
            id=item.id,
            name=item.name,
            weight=item.weight,
            resolved_weight=weight,
            overall_weight=factor * 100,
            extra_credit=item.extra_credit,
            graded=graded,
            percentage=percentage,
            base_grade=score.base_grade if score else None,
            effective_score=score.effective_score if score else None,
            max_grade=item.max_grade
        )


def compute_final_grade(
    tree: GradebookTree,
    scores: Mapping[int, ItemScore],
    tolerance: float = DEFAULT_TOLERANCE,
    enrollment_id: Optional[int] = None
) -> FinalGradeResult:
    return AggregationEngine(tolerance).compute(tree, scores, enrollment_id)


def scores_from_records(grades) -> Dict[int, ItemScore]:
    """Map item id to score for a list of GradeRecord rows"""
    return {grade.item_id: ItemScore.from_record(grade) for grade in grades}
