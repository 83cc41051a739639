from pydantic import BaseModel
from typing import List, Optional, Literal

class GradeBreakdownNode(BaseModel):
    """Per-node detail of a final grade computation"""
    kind: Literal["category", "item"]
    id: int
    name: str
    weight: Optional[float] = None
    resolved_weight: float
    overall_weight: float
    extra_credit: bool
    graded: bool
    # None while nothing beneath the node is graded
    percentage: Optional[float] = None
    base_grade: Optional[float] = None
    effective_score: Optional[float] = None
    max_grade: Optional[float] = None
    children: List["GradeBreakdownNode"] = []

class FinalGradeResult(BaseModel):
    enrollment_id: Optional[int] = None
    gradebook_id: Optional[int] = None
    final_grade: float
    total_weight: float
    graded_items: int
    breakdown: List[GradeBreakdownNode]

GradeBreakdownNode.model_rebuild()
