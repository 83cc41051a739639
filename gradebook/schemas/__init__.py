from .base import ResponseBase, TimeStampedBase
from .hierarchy import (
    CreateCategoryOp,
    UpdateCategoryOp,
    DeleteCategoryOp,
    CreateItemOp,
    UpdateItemOp,
    DeleteItemOp,
    ReorderCategoriesOp,
    ReorderItemsOp,
    HierarchyOperation,
    GradebookResponse,
    CategoryResponse,
    ItemResponse,
    StructureNode,
    StructureTotals,
    GradebookStructure
)
from .grade import (
    SubmissionRef,
    AdjustmentResponse,
    GradeRecordResponse,
    GradeRecordUpdate,
    BulkGradeEntry
)
from .final_grade import GradeBreakdownNode, FinalGradeResult
