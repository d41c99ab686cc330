"""Category tree materialization and subtree traversal.

``TreeBuilder`` turns a flat, pre-sorted list of category rows into a forest.
``iter_descendant_levels`` walks a subtree breadth-first, one batched query
per level, and is shared by the cycle check, the depth pre-check and the
level cascade.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple
from uuid import UUID

if TYPE_CHECKING:
    from mall.repositories.category_repository import CategoryRepository


class CategoryRecord(Protocol):
    id: UUID
    name: str
    parent_id: Optional[UUID]
    level: int
    sort: int
    status: int


@dataclass
class TreeNode:
    """One category in a materialized tree."""

    id: UUID
    name: str
    level: int
    sort: int
    status: int
    parent_id: Optional[UUID] = None
    children: List["TreeNode"] = field(default_factory=list)


class TreeBuilder:
    """Builds a forest from flat category records in O(n)."""

    @staticmethod
    def build(records: Iterable[CategoryRecord]) -> List[TreeNode]:
        """Nest records under their parents.

        Children keep the input order, so callers sort by (level, sort)
        beforehand. A record whose parent is not in ``records`` (for example
        filtered out by status) is dropped together with its subtree.

        Args:
            records: Flat category rows

        Returns:
            Root nodes of the forest
        """
        records = list(records)
        nodes: Dict[UUID, TreeNode] = {
            r.id: TreeNode(
                id=r.id,
                name=r.name,
                level=r.level,
                sort=r.sort,
                status=r.status,
                parent_id=r.parent_id,
            )
            for r in records
        }

        forest: List[TreeNode] = []
        for record in records:
            node = nodes[record.id]
            if record.parent_id is None:
                forest.append(node)
                continue
            parent = nodes.get(record.parent_id)
            if parent is not None:
                parent.children.append(node)

        return forest

    @staticmethod
    def flatten(forest: Iterable[TreeNode]) -> List[TreeNode]:
        """Pre-order list of every node in the forest."""
        stack = list(reversed(list(forest)))
        flat: List[TreeNode] = []
        while stack:
            node = stack.pop()
            flat.append(node)
            stack.extend(reversed(node.children))
        return flat


async def iter_descendant_levels(
    repository: "CategoryRepository",
    root_id: UUID,
) -> AsyncIterator[Tuple[int, List[UUID]]]:
    """Yield (depth, ids) for each level below ``root_id``.

    Depth 1 holds the direct children. Every node is visited once even if
    the stored parent links contain a loop.
    """
    visited: Set[UUID] = {root_id}
    frontier: Sequence[UUID] = [root_id]
    depth = 0

    while frontier:
        edges = await repository.find_children_of(frontier)
        next_frontier = []
        for child_id, _parent_id in edges:
            if child_id in visited:
                continue
            visited.add(child_id)
            next_frontier.append(child_id)

        if not next_frontier:
            return

        depth += 1
        yield depth, next_frontier
        frontier = next_frontier
