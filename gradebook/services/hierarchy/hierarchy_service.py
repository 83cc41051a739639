"""
Structural mutations of a gradebook hierarchy.

`mutate_hierarchy` applies a batch of operations inside one transaction:
the gradebook row is locked first, every operation is applied to the
in-session rows, the resulting tree is validated once, and only then is the
transaction committed. Any error rolls the whole batch back.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from gradebook import models
from gradebook.core.config import settings
from gradebook.core.exceptions import ArgumentError, NotFoundError
from gradebook.schemas.hierarchy import (
    CreateCategoryOp,
    CreateItemOp,
    DeleteCategoryOp,
    DeleteItemOp,
    GradebookStructure,
    HierarchyOperation,
    ReorderCategoriesOp,
    ReorderItemsOp,
    UpdateCategoryOp,
    UpdateItemOp,
)
from gradebook.services.hierarchy.hierarchy_repository import HierarchyRepository
from gradebook.services.hierarchy.hierarchy_validator import (
    ensure_deletable,
    validate_hierarchy,
    validate_weight_value,
)
from gradebook.services.hierarchy.structure_builder import build_structure
from gradebook.utils.gradebook_tree import GradebookTree

logger = logging.getLogger(__name__)

_operation_adapter = TypeAdapter(HierarchyOperation)


class _Batch:
    """In-flight state of one mutation batch"""

    def __init__(self, gradebook: models.Gradebook, categories, items):
        self.gradebook = gradebook
        self.categories: Dict[int, models.GradebookCategory] = {c.id: c for c in categories}
        self.items: Dict[int, models.GradebookItem] = {i.id: i for i in items}
        self.category_keys: Dict[str, models.GradebookCategory] = {}
        self.item_keys: Dict[str, models.GradebookItem] = {}
        # rows created or updated, in operation order
        self.rows: List[Any] = []

    def tree(self) -> GradebookTree:
        return GradebookTree.from_models(self.gradebook.id, self.categories.values(), self.items.values())


def _check_sort_order(sort_order) -> int:
    if isinstance(sort_order, bool) or not isinstance(sort_order, int) or sort_order < 0:
        raise ArgumentError("Sort order must be a non-negative integer")
    return sort_order


def _check_grade_bounds(max_grade: float, min_grade: float) -> None:
    if not math.isfinite(max_grade) or not math.isfinite(min_grade):
        raise ArgumentError("Grade bounds must be finite numbers")
    if max_grade <= 0:
        raise ArgumentError("Maximum grade must be greater than 0")
    if min_grade < 0:
        raise ArgumentError("Minimum grade must be non-negative")
    if max_grade < min_grade:
        raise ArgumentError("Maximum grade must be greater than or equal to minimum grade")


def _check_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ArgumentError("Name must not be empty")
    return name


class HierarchyService:
    def __init__(self, repository: Optional[HierarchyRepository] = None, tolerance: Optional[float] = None):
        self.repository = repository or HierarchyRepository()
        self.tolerance = settings.WEIGHT_TOLERANCE if tolerance is None else tolerance

    # === batch entry point ===

    async def mutate_hierarchy(
        self,
        db: AsyncSession,
        gradebook_id: int,
        operations: Sequence[Union[HierarchyOperation, dict]]
    ) -> GradebookStructure:
        """Apply structural operations atomically and return the validated structure"""
        batch = await self._run(db, gradebook_id, operations)
        return build_structure(batch.tree(), batch.gradebook.course_id, batch.gradebook.structure_version)

    async def _run(
        self,
        db: AsyncSession,
        gradebook_id: int,
        operations: Sequence[Union[HierarchyOperation, dict]]
    ) -> _Batch:
        try:
            parsed = [self._parse_operation(op) for op in operations]
            if not parsed:
                raise ArgumentError("At least one hierarchy operation is required")

            # row lock serializes concurrent structural changes to one gradebook
            gradebook = await self.repository.get_gradebook(db, gradebook_id, for_update=True)
            batch = _Batch(
                gradebook,
                await self.repository.get_categories(db, gradebook_id),
                await self.repository.get_items(db, gradebook_id)
            )

            for operation in parsed:
                await self._apply(db, batch, operation)
            await db.flush()

            validate_hierarchy(batch.tree(), self.tolerance)

            gradebook.structure_version = (gradebook.structure_version or 0) + 1
            await db.commit()
            logger.info(
                f"Applied {len(parsed)} hierarchy operation(s) to gradebook {gradebook_id} "
                f"(version {gradebook.structure_version})"
            )
            return batch

        except Exception as e:
            await db.rollback()
            logger.error(f"Hierarchy mutation on gradebook {gradebook_id} failed: {str(e)}")
            raise

    def _parse_operation(self, operation):
        if isinstance(operation, dict):
            try:
                return _operation_adapter.validate_python(operation)
            except ValidationError as e:
                raise ArgumentError(f"Malformed hierarchy operation: {e}")
        return operation

    async def _apply(self, db: AsyncSession, batch: _Batch, operation) -> None:
        if isinstance(operation, CreateCategoryOp):
            await self._create_category(db, batch, operation)
        elif isinstance(operation, UpdateCategoryOp):
            self._update_category(batch, operation)
        elif isinstance(operation, DeleteCategoryOp):
            await self._delete_category(db, batch, operation)
        elif isinstance(operation, CreateItemOp):
            await self._create_item(db, batch, operation)
        elif isinstance(operation, UpdateItemOp):
            await self._update_item(db, batch, operation)
        elif isinstance(operation, DeleteItemOp):
            await self._delete_item(db, batch, operation)
        elif isinstance(operation, ReorderCategoriesOp):
            self._reorder(batch.categories.values(), "parent_id", operation.parent_id, operation.category_ids, batch)
        elif isinstance(operation, ReorderItemsOp):
            self._reorder(batch.items.values(), "category_id", operation.category_id, operation.item_ids, batch)
        else:
            raise ArgumentError(f"Unsupported hierarchy operation: {type(operation).__name__}")

    # === helpers ===

    def _resolve_category(self, batch: _Batch, category_id: Optional[int], category_key: Optional[str]) -> Optional[int]:
        if category_key is not None:
            if category_id is not None:
                raise ArgumentError("Give either a category id or a batch key, not both")
            category = batch.category_keys.get(category_key)
            if category is None or category.id not in batch.categories:
                raise ArgumentError(f"Unknown category key '{category_key}'")
            return category.id
        if category_id is None:
            return None
        if category_id not in batch.categories:
            raise NotFoundError(
                f"Category with ID {category_id} not found in gradebook {batch.gradebook.id}"
            )
        return category_id

    def _next_sort_order(self, rows, parent_field: str, scope_id: Optional[int]) -> int:
        orders = [row.sort_order for row in rows if getattr(row, parent_field) == scope_id]
        return max(orders) + 1 if orders else 0

    def _register_key(self, keys: Dict[str, Any], key: Optional[str], row) -> None:
        if key is None:
            return
        if key in keys:
            raise ArgumentError(f"Batch key '{key}' is used twice")
        keys[key] = row

    # === categories ===

    async def _create_category(self, db: AsyncSession, batch: _Batch, op: CreateCategoryOp) -> None:
        parent_id = self._resolve_category(batch, op.parent_id, op.parent_key)
        sort_order = (
            _check_sort_order(op.sort_order)
            if op.sort_order is not None
            else self._next_sort_order(batch.categories.values(), "parent_id", parent_id)
        )
        category = models.GradebookCategory(
            gradebook_id=batch.gradebook.id,
            parent_id=parent_id,
            name=_check_name(op.name),
            description=op.description,
            weight=validate_weight_value(op.weight),
            extra_credit=bool(op.extra_credit),
            sort_order=sort_order
        )
        db.add(category)
        await db.flush()

        batch.categories[category.id] = category
        self._register_key(batch.category_keys, op.key, category)
        batch.rows.append(category)

    def _update_category(self, batch: _Batch, op: UpdateCategoryOp) -> None:
        category = batch.categories.get(op.category_id)
        if category is None:
            raise NotFoundError(f"Category with ID {op.category_id} not found in gradebook {batch.gradebook.id}")

        fields = op.model_fields_set
        if "name" in fields:
            category.name = _check_name(op.name)
        if "description" in fields:
            category.description = op.description
        if "weight" in fields:
            category.weight = validate_weight_value(op.weight)
        if "extra_credit" in fields:
            if op.extra_credit is None:
                raise ArgumentError("extra_credit must be true or false")
            category.extra_credit = op.extra_credit
        if "sort_order" in fields:
            category.sort_order = _check_sort_order(op.sort_order)
        if "parent_id" in fields or "parent_key" in fields:
            # cycles are reported by the structural check of the final tree
            category.parent_id = self._resolve_category(batch, op.parent_id, op.parent_key)

        batch.rows.append(category)

    async def _delete_category(self, db: AsyncSession, batch: _Batch, op: DeleteCategoryOp) -> None:
        category = batch.categories.get(op.category_id)
        if category is None:
            raise NotFoundError(f"Category with ID {op.category_id} not found in gradebook {batch.gradebook.id}")

        ensure_deletable(batch.tree(), category.id)

        await db.delete(category)
        await db.flush()
        del batch.categories[category.id]

    # === items ===

    async def _create_item(self, db: AsyncSession, batch: _Batch, op: CreateItemOp) -> None:
        _check_grade_bounds(op.max_grade, op.min_grade)
        category_id = self._resolve_category(batch, op.category_id, op.category_key)
        sort_order = (
            _check_sort_order(op.sort_order)
            if op.sort_order is not None
            else self._next_sort_order(batch.items.values(), "category_id", category_id)
        )
        item = models.GradebookItem(
            gradebook_id=batch.gradebook.id,
            category_id=category_id,
            name=_check_name(op.name),
            description=op.description,
            max_grade=op.max_grade,
            min_grade=op.min_grade,
            weight=validate_weight_value(op.weight),
            extra_credit=bool(op.extra_credit),
            sort_order=sort_order
        )
        db.add(item)
        await db.flush()

        batch.items[item.id] = item
        self._register_key(batch.item_keys, op.key, item)
        batch.rows.append(item)

    async def _update_item(self, db: AsyncSession, batch: _Batch, op: UpdateItemOp) -> None:
        item = batch.items.get(op.item_id)
        if item is None:
            raise NotFoundError(f"Gradebook item with ID {op.item_id} not found in gradebook {batch.gradebook.id}")

        fields = op.model_fields_set
        if "max_grade" in fields or "min_grade" in fields:
            max_grade = op.max_grade if "max_grade" in fields else item.max_grade
            min_grade = op.min_grade if "min_grade" in fields else item.min_grade
            if max_grade is None or min_grade is None:
                raise ArgumentError("Grade bounds must not be empty")
            _check_grade_bounds(max_grade, min_grade)
            outside = await self.repository.count_grades_outside(db, item.id, min_grade, max_grade)
            if outside:
                raise ArgumentError(
                    f"{outside} recorded grade(s) of item {item.id} fall outside [{min_grade}, {max_grade}]"
                )
            item.max_grade = max_grade
            item.min_grade = min_grade

        if "name" in fields:
            item.name = _check_name(op.name)
        if "description" in fields:
            item.description = op.description
        if "weight" in fields:
            item.weight = validate_weight_value(op.weight)
        if "extra_credit" in fields:
            if op.extra_credit is None:
                raise ArgumentError("extra_credit must be true or false")
            item.extra_credit = op.extra_credit
        if "sort_order" in fields:
            item.sort_order = _check_sort_order(op.sort_order)
        if "category_id" in fields or "category_key" in fields:
            item.category_id = self._resolve_category(batch, op.category_id, op.category_key)

        batch.rows.append(item)

    async def _delete_item(self, db: AsyncSession, batch: _Batch, op: DeleteItemOp) -> None:
        item = batch.items.get(op.item_id)
        if item is None:
            raise NotFoundError(f"Gradebook item with ID {op.item_id} not found in gradebook {batch.gradebook.id}")

        await self.repository.delete_item_grades(db, [item.id])
        await db.delete(item)
        await db.flush()
        del batch.items[item.id]

    # === ordering ===

    def _reorder(self, rows, parent_field: str, scope_id: Optional[int], ordered_ids: List[int], batch: _Batch) -> None:
        if scope_id is not None and scope_id not in batch.categories:
            raise NotFoundError(f"Category with ID {scope_id} not found in gradebook {batch.gradebook.id}")

        scope_rows = {row.id: row for row in rows if getattr(row, parent_field) == scope_id}
        if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(scope_rows):
            raise ArgumentError(
                f"Reorder must list every sibling exactly once; expected ids {sorted(scope_rows)}"
            )
        for position, row_id in enumerate(ordered_ids):
            scope_rows[row_id].sort_order = position
            batch.rows.append(scope_rows[row_id])

    # === single-operation helpers ===

    async def _single(self, db: AsyncSession, gradebook_id: int, operation_type, **fields):
        try:
            operation = operation_type(**fields)
        except ValidationError as e:
            raise ArgumentError(f"Invalid {operation_type.__name__} arguments: {e}")
        batch = await self._run(db, gradebook_id, [operation])
        return batch.rows[-1] if batch.rows else None

    async def create_category(self, db: AsyncSession, gradebook_id: int, **fields) -> models.GradebookCategory:
        return await self._single(db, gradebook_id, CreateCategoryOp, **fields)

    async def update_category(self, db: AsyncSession, gradebook_id: int, category_id: int, **fields) -> models.GradebookCategory:
        return await self._single(db, gradebook_id, UpdateCategoryOp, category_id=category_id, **fields)

    async def delete_category(self, db: AsyncSession, gradebook_id: int, category_id: int) -> None:
        await self._single(db, gradebook_id, DeleteCategoryOp, category_id=category_id)

    async def create_item(self, db: AsyncSession, gradebook_id: int, **fields) -> models.GradebookItem:
        return await self._single(db, gradebook_id, CreateItemOp, **fields)

    async def update_item(self, db: AsyncSession, gradebook_id: int, item_id: int, **fields) -> models.GradebookItem:
        return await self._single(db, gradebook_id, UpdateItemOp, item_id=item_id, **fields)

    async def delete_item(self, db: AsyncSession, gradebook_id: int, item_id: int) -> None:
        await self._single(db, gradebook_id, DeleteItemOp, item_id=item_id)

    async def reorder_categories(self, db: AsyncSession, gradebook_id: int, parent_id: Optional[int], category_ids: List[int]) -> None:
        await self._single(db, gradebook_id, ReorderCategoriesOp, parent_id=parent_id, category_ids=category_ids)

    async def reorder_items(self, db: AsyncSession, gradebook_id: int, category_id: Optional[int], item_ids: List[int]) -> None:
        await self._single(db, gradebook_id, ReorderItemsOp, category_id=category_id, item_ids=item_ids)
