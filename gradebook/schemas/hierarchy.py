from pydantic import BaseModel, Field
from typing import Annotated, List, Optional, Union, Literal
from .base import TimeStampedBase

# === operations ===

class CreateCategoryOp(BaseModel):
    """Create a category; `key` lets later operations in the same batch refer to it"""
    op: Literal["create_category"] = "create_category"
    key: Optional[str] = None
    parent_id: Optional[int] = None
    parent_key: Optional[str] = None
    name: str
    description: Optional[str] = None
    weight: Optional[float] = None
    extra_credit: bool = False
    sort_order: Optional[int] = None

class UpdateCategoryOp(BaseModel):
    """Update a category; only explicitly supplied fields are written"""
    op: Literal["update_category"] = "update_category"
    category_id: int
    parent_id: Optional[int] = None
    parent_key: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    weight: Optional[float] = None
    extra_credit: Optional[bool] = None
    sort_order: Optional[int] = None

class DeleteCategoryOp(BaseModel):
    op: Literal["delete_category"] = "delete_category"
    category_id: int

class CreateItemOp(BaseModel):
    """Create an item under a category, or at the root when no category is given"""
    op: Literal["create_item"] = "create_item"
    key: Optional[str] = None
    category_id: Optional[int] = None
    category_key: Optional[str] = None
    name: str
    description: Optional[str] = None
    max_grade: float = 100.0
    min_grade: float = 0.0
    weight: Optional[float] = None
    extra_credit: bool = False
    sort_order: Optional[int] = None

class UpdateItemOp(BaseModel):
    """Update an item; only explicitly supplied fields are written"""
    op: Literal["update_item"] = "update_item"
    item_id: int
    category_id: Optional[int] = None
    category_key: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    max_grade: Optional[float] = None
    min_grade: Optional[float] = None
    weight: Optional[float] = None
    extra_credit: Optional[bool] = None
    sort_order: Optional[int] = None

class DeleteItemOp(BaseModel):
    op: Literal["delete_item"] = "delete_item"
    item_id: int

class ReorderCategoriesOp(BaseModel):
    """Reassign sort orders 0..n-1 to every category of one scope"""
    op: Literal["reorder_categories"] = "reorder_categories"
    parent_id: Optional[int] = None
    category_ids: List[int]

class ReorderItemsOp(BaseModel):
    """Reassign sort orders 0..n-1 to every item of one scope"""
    op: Literal["reorder_items"] = "reorder_items"
    category_id: Optional[int] = None
    item_ids: List[int]

HierarchyOperation = Annotated[
    Union[
        CreateCategoryOp,
        UpdateCategoryOp,
        DeleteCategoryOp,
        CreateItemOp,
        UpdateItemOp,
        DeleteItemOp,
        ReorderCategoriesOp,
        ReorderItemsOp
    ],
    Field(discriminator="op")
]

# === read models ===

class GradebookUpdate(BaseModel):
    """Gradebook metadata a caller may change; unset fields are left alone"""
    name: Optional[str] = None
    enabled: Optional[bool] = None

class GradebookResponse(TimeStampedBase):
    id: int
    course_id: int
    name: Optional[str] = None
    enabled: bool = True
    structure_version: int

class CategoryResponse(TimeStampedBase):
    id: int
    gradebook_id: int
    parent_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    weight: Optional[float] = None
    extra_credit: bool
    sort_order: int

class ItemResponse(TimeStampedBase):
    id: int
    gradebook_id: int
    category_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    max_grade: float
    min_grade: float
    weight: Optional[float] = None
    extra_credit: bool
    sort_order: int

class StructureNode(BaseModel):
    """One node of the setup view with its configured and computed weights"""
    kind: Literal["category", "item"]
    id: int
    name: str
    weight: Optional[float] = None
    adjusted_weight: float
    overall_weight: float
    extra_credit: bool
    sort_order: int
    max_grade: Optional[float] = None
    min_grade: Optional[float] = None
    children: List["StructureNode"] = []

class StructureTotals(BaseModel):
    base_total: float
    extra_credit_total: float
    calculated_total: float
    total_max_grade: float

class GradebookStructure(BaseModel):
    """Validated hierarchy of a gradebook"""
    gradebook_id: int
    course_id: int
    structure_version: int
    items: List[StructureNode]
    totals: StructureTotals

StructureNode.model_rebuild()

class GradebookExport(BaseModel):
    """Portable snapshot of a gradebook: its rows plus the computed setup view"""
    gradebook_id: int
    course_id: int
    gradebook: GradebookResponse
    categories: List[CategoryResponse] = []
    items: List[ItemResponse] = []
    gradebook_setup: GradebookStructure
