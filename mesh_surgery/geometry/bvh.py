"""
Bounding volume tree over anything that can report its own AABB.

Nodes live in a flat arena and reference their parent and children by
integer index, so refitting after an insert or a removal walks straight
up to the root instead of re-searching the tree for parents.

Usage:
    from mesh_surgery.geometry.bvh import BVHTree
    from mesh_surgery.geometry.regions import SphereRegion

    tree = BVHTree()
    for tri in triangles:
        tree.insert(tri)

    hits = tree.query(SphereRegion(center, radius=0.5))
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, Iterator, List, Optional, Protocol, TypeVar

from mesh_surgery import config
from mesh_surgery.geometry.aabb import AABB

logger = logging.getLogger(__name__)


class BoundsProvider(Protocol):
    """Anything the tree can index."""

    def get_aabb(self) -> AABB:
        ...


T = TypeVar('T', bound=BoundsProvider)
T_contra = TypeVar('T_contra', contravariant=True)


class QueryRegion(Protocol[T_contra]):
    """Predicate used to prune and filter a tree traversal."""

    def intersects(self, aabb: AABB) -> bool:
        """Could anything inside this box match?"""
        ...

    def contains(self, item: T_contra) -> bool:
        """Does this item match?"""
        ...


@dataclass
class BVHNode:
    """Arena entry. A leaf has `items`; an internal node has `left`/`right`."""
    aabb: AABB
    parent: Optional[int] = None
    left: Optional[int] = None
    right: Optional[int] = None
    items: Optional[List] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return self.items is not None


def _volume_enlargement(box: AABB, item_box: AABB) -> float:
    return box.union(item_box).volume() - box.volume()


class BVHTree(Generic[T]):
    """Binary AABB tree with bounded leaves.

    Attributes:
        max_leaf_size: Items per leaf before it is split in two
        max_depth: Advisory depth; logged when exceeded, never enforced
    """

    def __init__(
        self,
        max_leaf_size: Optional[int] = None,
        max_depth: Optional[int] = None,
    ):
        self.max_leaf_size = config.BVH_MAX_LEAF_SIZE if max_leaf_size is None else max_leaf_size
        self.max_depth = config.BVH_MAX_DEPTH if max_depth is None else max_depth
        if self.max_leaf_size < 1:
            raise ValueError("max_leaf_size must be >= 1")

        self._nodes: List[Optional[BVHNode]] = []
        self._free: List[int] = []
        self._root: Optional[int] = None
        self._leaf_of: Dict[int, int] = {}  # id(item) -> leaf node index
        self._count = 0
        self._depth_warned = False

    # ------------------------------------------------------------------
    # Size
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return self._count

    def is_empty(self) -> bool:
        return self._count == 0

    @property
    def root(self) -> Optional[BVHNode]:
        return self._nodes[self._root] if self._root is not None else None

    def clear(self) -> None:
        self._nodes.clear()
        self._free.clear()
        self._root = None
        self._leaf_of.clear()
        self._count = 0

    # ------------------------------------------------------------------
    # Arena helpers
    # ------------------------------------------------------------------

    def _alloc(self, node: BVHNode) -> int:
        if self._free:
            idx = self._free.pop()
            self._nodes[idx] = node
        else:
            idx = len(self._nodes)
            self._nodes.append(node)
        return idx

    def _release(self, idx: int) -> None:
        self._nodes[idx] = None
        self._free.append(idx)

    def _node(self, idx: int) -> BVHNode:
        node = self._nodes[idx]
        assert node is not None, f"dangling node index {idx}"
        return node

    def _recompute_aabb(self, idx: int) -> None:
        node = self._node(idx)
        box = AABB.empty()
        if node.is_leaf:
            for item in node.items:
                box.include(item.get_aabb())
        else:
            box.include(self._node(node.left).aabb)
            box.include(self._node(node.right).aabb)
        node.aabb = box

    def _refit_upward(self, idx: Optional[int]) -> None:
        while idx is not None:
            self._recompute_aabb(idx)
            idx = self._node(idx).parent

    def _node_depth(self, idx: int) -> int:
        depth = 0
        parent = self._node(idx).parent
        while parent is not None:
            depth += 1
            parent = self._node(parent).parent
        return depth

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def insert(self, item: T) -> bool:
        """Insert an item. Items with an invalid AABB are ignored.

        Returns:
            True if the item was added
        """
        item_box = item.get_aabb()
        if not item_box.is_valid():
            logger.debug("Ignoring item with invalid AABB: %r", item_box)
            return False

        if self._root is None:
            self._root = self._alloc(BVHNode(aabb=item_box.copy(), items=[item]))
            self._leaf_of[id(item)] = self._root
            self._count = 1
            return True

        leaf_idx = self._find_best_leaf(item_box)
        leaf = self._node(leaf_idx)
        leaf.items.append(item)
        self._leaf_of[id(item)] = leaf_idx
        self._count += 1

        # Inserting can only grow boxes on the way up
        idx: Optional[int] = leaf_idx
        while idx is not None:
            node = self._node(idx)
            node.aabb.include(item_box)
            idx = node.parent

        if len(leaf.items) > self.max_leaf_size:
            self._split_leaf(leaf_idx)
        return True

    def _find_best_leaf(self, item_box: AABB) -> int:
        idx = self._root
        node = self._node(idx)
        while not node.is_leaf:
            left = self._node(node.left)
            right = self._node(node.right)
            grow_left = _volume_enlargement(left.aabb, item_box)
            grow_right = _volume_enlargement(right.aabb, item_box)
            idx = node.left if grow_left <= grow_right else node.right
            node = self._node(idx)
        return idx

    def _split_leaf(self, idx: int) -> None:
        """Split an overfull leaf at the median along its longest axis."""
        node = self._node(idx)
        axis = int(node.aabb.longest_axis())
        items = sorted(node.items, key=lambda it: it.get_aabb().center[axis])
        median = len(items) // 2

        left_idx = self._alloc(BVHNode(aabb=AABB.empty(), parent=idx, items=items[:median]))
        right_idx = self._alloc(BVHNode(aabb=AABB.empty(), parent=idx, items=items[median:]))
        self._recompute_aabb(left_idx)
        self._recompute_aabb(right_idx)
        for it in items[:median]:
            self._leaf_of[id(it)] = left_idx
        for it in items[median:]:
            self._leaf_of[id(it)] = right_idx

        # The node keeps its arena slot, so the parent's child index stays valid
        node.items = None
        node.left = left_idx
        node.right = right_idx
        self._recompute_aabb(idx)

        if not self._depth_warned and self._node_depth(left_idx) > self.max_depth:
            self._depth_warned = True
            logger.debug("BVH depth exceeded advisory max_depth=%d", self.max_depth)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(self, item: T) -> bool:
        """Remove an item previously inserted.

        Returns:
            True if the item was found and removed
        """
        leaf_idx = self._leaf_of.get(id(item))
        if leaf_idx is None:
            return False

        leaf = self._node(leaf_idx)
        for pos, candidate in enumerate(leaf.items):
            if candidate is item:
                del leaf.items[pos]
                break
        else:
            return False

        del self._leaf_of[id(item)]
        self._count -= 1

        if leaf.items or leaf.parent is None:
            if not leaf.items:
                self.clear()
                return True
            self._refit_upward(leaf_idx)
            return True

        self._collapse_empty_leaf(leaf_idx)
        return True

    def _collapse_empty_leaf(self, leaf_idx: int) -> None:
        """Promote the sibling of an empty leaf into their parent's slot."""
        leaf = self._node(leaf_idx)
        parent_idx = leaf.parent
        parent = self._node(parent_idx)
        sibling_idx = parent.right if parent.left == leaf_idx else parent.left
        sibling = self._node(sibling_idx)

        parent.aabb = sibling.aabb
        parent.left = sibling.left
        parent.right = sibling.right
        parent.items = sibling.items

        if sibling.is_leaf:
            for it in sibling.items:
                self._leaf_of[id(it)] = parent_idx
        else:
            self._node(sibling.left).parent = parent_idx
            self._node(sibling.right).parent = parent_idx

        self._release(leaf_idx)
        self._release(sibling_idx)
        self._refit_upward(parent.parent)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, region: QueryRegion) -> List[T]:
        """Collect items accepted by the region, pruning disjoint subtrees."""
        results: List[T] = []
        if self._root is None:
            return results

        stack = [self._root]
        while stack:
            node = self._node(stack.pop())
            if not region.intersects(node.aabb):
                continue
            if node.is_leaf:
                results.extend(it for it in node.items if region.contains(it))
            else:
                stack.append(node.right)
                stack.append(node.left)
        return results

    def items(self) -> Iterator[T]:
        """Iterate over all stored items (leaf order)."""
        for node in self._nodes:
            if node is not None and node.is_leaf:
                yield from node.items

    def iter_nodes(self) -> Iterator[BVHNode]:
        """Iterate over live nodes, parents before children."""
        if self._root is None:
            return
        stack = [self._root]
        while stack:
            node = self._node(stack.pop())
            yield node
            if not node.is_leaf:
                stack.append(node.right)
                stack.append(node.left)

    def depth(self) -> int:
        """Depth of the deepest leaf (a single leaf root has depth 0)."""
        if self._root is None:
            return 0
        deepest = 0
        stack = [(self._root, 0)]
        while stack:
            idx, d = stack.pop()
            node = self._node(idx)
            if node.is_leaf:
                deepest = max(deepest, d)
            else:
                stack.append((node.left, d + 1))
                stack.append((node.right, d + 1))
        return deepest

    def check_invariants(self) -> List[str]:
        """Walk the tree and describe every structural violation found.

        Returns:
            List of problem descriptions (empty if the tree is consistent)
        """
        problems: List[str] = []
        if self._root is None:
            if self._count:
                problems.append(f"empty tree reports {self._count} items")
            return problems

        seen = 0
        stack = [self._root]
        while stack:
            idx = stack.pop()
            node = self._node(idx)
            if node.is_leaf:
                if len(node.items) > self.max_leaf_size:
                    problems.append(f"leaf {idx} holds {len(node.items)} items")
                for it in node.items:
                    seen += 1
                    if not node.aabb.contains(it.get_aabb()):
                        problems.append(f"leaf {idx} box misses an item")
                    if self._leaf_of.get(id(it)) != idx:
                        problems.append(f"leaf map is stale for an item in {idx}")
                continue

            for child_idx in (node.left, node.right):
                child = self._node(child_idx)
                if child.parent != idx:
                    problems.append(f"node {child_idx} has parent {child.parent}, expected {idx}")
                if child.aabb.is_valid() and not node.aabb.contains(child.aabb):
                    problems.append(f"node {idx} box does not contain child {child_idx}")
                stack.append(child_idx)

        if seen != self._count:
            problems.append(f"found {seen} items, count says {self._count}")
        return problems
