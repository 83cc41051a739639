from typing import List, Optional

from gradebook.schemas.hierarchy import GradebookStructure, StructureNode, StructureTotals
from gradebook.utils.gradebook_tree import CATEGORY, GradebookTree, resolve_scope_weights


def _build_scope(
    tree: GradebookTree,
    scope_id: Optional[int],
    parent_factor: float,
    in_extra_credit: bool,
    totals: dict
) -> List[StructureNode]:
    nodes: List[StructureNode] = []
    resolved = resolve_scope_weights(tree, scope_id)

    for child in tree.children(scope_id):
        adjusted = resolved[child.key]
        # fraction-of-parent composition: 60% category x 50% item = 30% overall
        factor = parent_factor * adjusted / 100
        extra = in_extra_credit or child.extra_credit

        if child.kind == CATEGORY:
            nodes.append(StructureNode(
                kind=CATEGORY,
                id=child.id,
                name=child.name,
                weight=child.weight,
                adjusted_weight=adjusted,
                overall_weight=factor * 100,
                extra_credit=child.extra_credit,
                sort_order=child.sort_order,
                children=_build_scope(tree, child.id, factor, extra, totals)
            ))
            continue

        if extra:
            totals["extra_credit_total"] += factor * 100
        else:
            totals["base_total"] += factor * 100
        totals["total_max_grade"] += child.max_grade

        nodes.append(StructureNode(
            kind="item",
            id=child.id,
            name=child.name,
            weight=child.weight,
            adjusted_weight=adjusted,
            overall_weight=factor * 100,
            extra_credit=child.extra_credit,
            sort_order=child.sort_order,
            max_grade=child.max_grade,
            min_grade=child.min_grade
        ))
    return nodes


def build_structure(tree: GradebookTree, course_id: int, structure_version: int) -> GradebookStructure:
    """Setup view of a gradebook: configured, adjusted and overall weight of every node"""
    totals = {"base_total": 0.0, "extra_credit_total": 0.0, "total_max_grade": 0.0}
    items = _build_scope(tree, None, 1.0, False, totals)
    return GradebookStructure(
        gradebook_id=tree.gradebook_id,
        course_id=course_id,
        structure_version=structure_version,
        items=items,
        totals=StructureTotals(
            base_total=totals["base_total"],
            extra_credit_total=totals["extra_credit_total"],
            calculated_total=100 + totals["extra_credit_total"],
            total_max_grade=totals["total_max_grade"]
        )
    )
