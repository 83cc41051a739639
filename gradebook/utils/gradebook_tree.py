"""
Plain-data view of one gradebook's category/item forest.

Nodes reference their parent and children by id only, so a tree can be built
from ORM rows inside a transaction or from literals in a test, and then be
validated or aggregated without touching the database.

Weight resolution rules shared by the validator and the aggregation engine:
- extra-credit children keep their own weight (NULL counts as 0) and never
  take part in the baseline distribution;
- a category with no baseline item beneath it (every item below is extra
  credit, or there are none) and a NULL/0 weight resolves to 0 and does not
  take part either;
- every other child is a baseline participant. Participants with an explicit
  weight keep it; participants with a NULL weight are auto-weighted and share
  whatever the explicit weights leave of 100 in equal parts.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterable, List, Optional, Tuple, Union

CATEGORY = "category"
ITEM = "item"

NodeKey = Tuple[str, int]


@dataclass
class CategoryNode:
    id: int
    name: str
    parent_id: Optional[int] = None
    weight: Optional[float] = None
    extra_credit: bool = False
    sort_order: int = 0
    category_ids: List[int] = field(default_factory=list)
    item_ids: List[int] = field(default_factory=list)

    kind: ClassVar[str] = CATEGORY

    @property
    def key(self) -> NodeKey:
        return (CATEGORY, self.id)

    @property
    def is_empty(self) -> bool:
        return not self.category_ids and not self.item_ids


@dataclass
class ItemNode:
    id: int
    name: str
    category_id: Optional[int] = None
    weight: Optional[float] = None
    extra_credit: bool = False
    sort_order: int = 0
    max_grade: float = 100.0
    min_grade: float = 0.0

    kind: ClassVar[str] = ITEM

    @property
    def key(self) -> NodeKey:
        return (ITEM, self.id)

    @property
    def parent_id(self) -> Optional[int]:
        return self.category_id


Node = Union[CategoryNode, ItemNode]


class GradebookTree:
    def __init__(
        self,
        gradebook_id: Optional[int] = None,
        categories: Iterable[CategoryNode] = (),
        items: Iterable[ItemNode] = ()
    ):
        self.gradebook_id = gradebook_id
        self.categories: Dict[int, CategoryNode] = {c.id: c for c in categories}
        self.items: Dict[int, ItemNode] = {i.id: i for i in items}
        self.root_category_ids: List[int] = []
        self.root_item_ids: List[int] = []
        # nodes whose parent id points at a category that does not exist
        self.orphans: List[NodeKey] = []
        self._link()

    @classmethod
    def from_models(cls, gradebook_id: int, categories, items) -> "GradebookTree":
        """Build a tree from GradebookCategory / GradebookItem rows"""
        return cls(
            gradebook_id,
            categories=[
                CategoryNode(
                    id=c.id,
                    name=c.name,
                    parent_id=c.parent_id,
                    weight=c.weight,
                    extra_credit=bool(c.extra_credit),
                    sort_order=c.sort_order or 0
                )
                for c in categories
            ],
            items=[
                ItemNode(
                    id=i.id,
                    name=i.name,
                    category_id=i.category_id,
                    weight=i.weight,
                    extra_credit=bool(i.extra_credit),
                    sort_order=i.sort_order or 0,
                    max_grade=i.max_grade,
                    min_grade=i.min_grade if i.min_grade is not None else 0.0
                )
                for i in items
            ]
        )

    def _link(self) -> None:
        for category in self.categories.values():
            category.category_ids = []
            category.item_ids = []

        for category in sorted(self.categories.values(), key=lambda c: (c.sort_order, c.id)):
            if category.parent_id is None:
                self.root_category_ids.append(category.id)
            elif category.parent_id in self.categories:
                self.categories[category.parent_id].category_ids.append(category.id)
            else:
                self.orphans.append(category.key)

        for item in sorted(self.items.values(), key=lambda i: (i.sort_order, i.id)):
            if item.category_id is None:
                self.root_item_ids.append(item.id)
            elif item.category_id in self.categories:
                self.categories[item.category_id].item_ids.append(item.id)
            else:
                self.orphans.append(item.key)

    # === navigation ===

    def scopes(self) -> List[Optional[int]]:
        """Every scope id: None for the root, then each category"""
        return [None] + list(self.categories)

    def children(self, scope_id: Optional[int]) -> List[Node]:
        """Direct children of a scope, items first, each group by sort order"""
        if scope_id is None:
            item_ids, category_ids = self.root_item_ids, self.root_category_ids
        else:
            category = self.categories[scope_id]
            item_ids, category_ids = category.item_ids, category.category_ids
        return [self.items[i] for i in item_ids] + [self.categories[c] for c in category_ids]

    def ancestors(self, category_id: int) -> List[int]:
        """Parent chain of a category, nearest first; stops on a cycle"""
        chain: List[int] = []
        current = self.categories[category_id].parent_id
        while current is not None and current in self.categories and current not in chain and current != category_id:
            chain.append(current)
            current = self.categories[current].parent_id
        return chain

    def find_cycle(self) -> Optional[List[int]]:
        """Return the ids of one parent cycle among categories, if any"""
        for category_id in self.categories:
            seen: List[int] = []
            current: Optional[int] = category_id
            while current is not None and current in self.categories:
                if current in seen:
                    return seen[seen.index(current):]
                seen.append(current)
                current = self.categories[current].parent_id
        return None

    def scope_label(self, scope_id: Optional[int]) -> str:
        if scope_id is None:
            return "root"
        names = [self.categories[c].name for c in reversed(self.ancestors(scope_id))]
        names.append(self.categories[scope_id].name)
        return " > ".join(["root"] + names)

    def has_baseline_items(self, category_id: int) -> bool:
        """True when a non-extra-credit item sits beneath the category.

        Extra-credit subcategories are not searched: whatever they hold only
        ever reaches this category as an extra-credit addend.
        """
        pending = [category_id]
        visited = set()
        while pending:
            current = pending.pop()
            if current in visited:
                continue
            visited.add(current)
            category = self.categories[current]
            if any(not self.items[i].extra_credit for i in category.item_ids):
                return True
            pending.extend(c for c in category.category_ids if not self.categories[c].extra_credit)
        return False


# === weight resolution ===

def is_baseline_participant(tree: GradebookTree, node: Node) -> bool:
    if node.extra_credit:
        return False
    if node.kind == CATEGORY and not node.weight and not tree.has_baseline_items(node.id):
        return False
    return True


def specified_baseline_weight(tree: GradebookTree, scope_id: Optional[int]) -> Tuple[float, int, int]:
    """(sum of explicit participant weights, explicit count, auto-weighted count)"""
    total = 0.0
    explicit = 0
    auto = 0
    for child in tree.children(scope_id):
        if not is_baseline_participant(tree, child):
            continue
        if child.weight is None:
            auto += 1
        else:
            total += child.weight
            explicit += 1
    return total, explicit, auto


def resolve_scope_weights(tree: GradebookTree, scope_id: Optional[int]) -> Dict[NodeKey, float]:
    """Resolved weight of every direct child of a scope"""
    specified, _, auto = specified_baseline_weight(tree, scope_id)
    auto_share = max(0.0, 100.0 - specified) / auto if auto else 0.0

    resolved: Dict[NodeKey, float] = {}
    for child in tree.children(scope_id):
        if child.extra_credit:
            resolved[child.key] = child.weight or 0.0
        elif not is_baseline_participant(tree, child):
            resolved[child.key] = 0.0
        elif child.weight is None:
            resolved[child.key] = auto_share
        else:
            resolved[child.key] = child.weight
    return resolved
