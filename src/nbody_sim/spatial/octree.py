"""
Adaptive octree over point masses, aggregating center of mass per subtree.

Each node owns an axis-aligned cube (minimum corner ``origin``, edge length
``size``) and holds one of three contents:

- ``Empty``  : no bodies under this region
- ``Leaf``   : one body (or one aggregate of inseparable bodies)
- ``Branch`` : eight half-size children tiling the cube, plus the merged
  center of mass of every leaf beneath them

Membership is half-open per axis (``origin <= p < origin + size``) and the
child of a point is the 3-bit octant mask of ``p >= midpoint``, so a body on a
shared face belongs to exactly one child.

Points inside the root region are sub-inserted by descending the tree. Points
outside grow the root: a new root of double the size is built around the old
one (which becomes one of its children) until the point is covered.

The index is meant to be rebuilt from a fresh body snapshot each tick; it is
never patched when bodies move.

Reference:
    Barnes & Hut (1986) - A Hierarchical O(N log N) Force-Calculation Algorithm
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterator, List, Optional, Sequence, Tuple
import warnings
import numpy as np

from ..core.errors import DegenerateGeometryError, MalformedInputError
from ..core.interfaces import NDArrayFloat, SpatialIndex
from .com import CenterOfMass

# Constants
DEFAULT_MAX_DEPTH = 64          # Subdivision levels below the root before bodies are inseparable
COINCIDENT_POLICIES = ("merge", "raise")

# Offset direction of child i along x, y, z (bit 0, 1, 2 of i)
_OCTANT_BITS = np.array(
    [[(i >> axis) & 1 for axis in range(3)] for i in range(8)],
    dtype=np.float64,
)


def octant_index(point: NDArrayFloat, midpoint: NDArrayFloat) -> int:
    """Determine which octant (0-7) a point lies in relative to a cube midpoint."""
    idx = 0
    if point[0] >= midpoint[0]: idx |= 1
    if point[1] >= midpoint[1]: idx |= 2
    if point[2] >= midpoint[2]: idx |= 4
    return idx


def _as_vec3(value: Any, name: str) -> NDArrayFloat:
    vec = np.array(value, dtype=np.float64).reshape(-1)
    if vec.shape != (3,):
        raise MalformedInputError(f"{name} must be a 3-vector, got shape {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise MalformedInputError(f"{name} must be finite, got {vec}")
    return vec


class Empty:
    """No bodies under this region."""

    __slots__ = ()

    def __eq__(self, other) -> bool:
        return isinstance(other, Empty)

    __hash__ = None

    def __repr__(self) -> str:
        return "Empty"


@dataclass(eq=False)
class Leaf:
    """
    A single indexed body.

    ``position`` is the snapshot supplied at insertion and decides which
    octant the leaf moves to if it is ever split. ``handles`` holds more than
    one entry only when inseparable bodies were merged into this leaf.
    """

    handles: List[Hashable]
    position: NDArrayFloat
    com: CenterOfMass

    @property
    def handle(self) -> Hashable:
        return self.handles[0]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Leaf):
            return NotImplemented
        return (
            self.handles == other.handles
            and bool(np.array_equal(self.position, other.position))
            and self.com == other.com
        )

    __hash__ = None


@dataclass(eq=False)
class Branch:
    """Eight children tiling the parent cube plus their merged center of mass."""

    com: CenterOfMass
    children: List["Octree"] = field(default_factory=list)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Branch):
            return NotImplemented
        return self.com == other.com and self.children == other.children

    __hash__ = None


class Octree(SpatialIndex):
    """
    Octree node; the root node is the spatial index itself.

    Parameters
    ----------
    origin : array-like, shape (3,)
        Minimum corner of the cube.
    size : float
        Edge length of the cube (> 0).
    max_depth : int, default 64
        Number of subdivision levels below the root within which two bodies
        must separate. Bodies that do not (including bodies at exactly the
        same position) are handled by ``coincident``.
    coincident : {"merge", "raise"}, default "merge"
        ``"merge"`` folds the new body into the existing leaf and warns;
        ``"raise"`` raises ``DegenerateGeometryError`` and leaves the tree
        unchanged.
    content : Empty, Leaf or Branch, optional
        Initial content (default Empty).

    Examples
    --------
    >>> tree = Octree.empty([0.0, 0.0, 0.0], 1.0)
    >>> tree.insert("a", [0.5, 0.0, 0.0], 1.0)
    >>> tree.insert("b", [0.0, 0.5, 0.0], 1.0)
    >>> tree.com
    CenterOfMass(sum=(0.5, 0.5, 0), mass=2)
    """

    def __init__(
        self,
        origin: Sequence[float],
        size: float,
        max_depth: int = DEFAULT_MAX_DEPTH,
        coincident: str = "merge",
        content: Optional[Any] = None,
    ):
        self.origin = _as_vec3(origin, "origin")
        self.size = float(size)
        if not np.isfinite(self.size) or self.size <= 0.0:
            raise ValueError(f"Octree size must be finite and positive, got {size}")
        if coincident not in COINCIDENT_POLICIES:
            raise ValueError(
                f"coincident must be one of {COINCIDENT_POLICIES}, got '{coincident}'"
            )
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self.max_depth = int(max_depth)
        self.coincident = coincident
        self.content = Empty() if content is None else content

    @classmethod
    def empty(cls, origin: Sequence[float], size: float, **kwargs) -> "Octree":
        """Create an index covering one cube with no bodies in it."""
        return cls(origin, size, **kwargs)

    @classmethod
    def build(cls, bodies: Any, origin: Sequence[float], size: float, **kwargs) -> "Octree":
        """
        Build a fresh index over the current snapshot of a body store.

        Parameters
        ----------
        bodies : BodyStore
            Anything with ``handles`` and ``lookup(handle)``.
        origin, size :
            Initial root region; the root grows to cover every body.

        The root is grown to the bounding box of the snapshot before any body
        is inserted, so the finished tree does not depend on store order.
        """
        tree = cls(origin, size, **kwargs)
        positions = []
        for handle in bodies.handles:
            snapshot = bodies.lookup(handle)
            if snapshot is not None:
                positions.append(_as_vec3(snapshot[0], "position"))
        if positions:
            positions = np.array(positions)
            tree._cover(positions.min(axis=0))
            tree._cover(positions.max(axis=0))
        for handle in bodies.handles:
            tree.insert_body(bodies, handle)
        return tree

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def midpoint(self) -> NDArrayFloat:
        return self.origin + 0.5 * self.size

    def contains(self, point: NDArrayFloat) -> bool:
        """Half-open membership test: origin <= p < origin + size per axis."""
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(self.origin <= p) and np.all(p < self.origin + self.size))

    def octant(self, point: NDArrayFloat) -> int:
        """Index of the child cube that ``point`` falls in."""
        return octant_index(point, self.midpoint)

    def child_origin(self, index: int) -> NDArrayFloat:
        """Minimum corner of child ``index``."""
        return self.origin + 0.5 * self.size * _OCTANT_BITS[index]

    def _spawn(self, origin: NDArrayFloat, size: float, content: Optional[Any] = None) -> "Octree":
        return Octree(origin, size, self.max_depth, self.coincident, content)

    def _subdivide(self) -> List["Octree"]:
        half = 0.5 * self.size
        return [self._spawn(self.child_origin(i), half) for i in range(8)]

    # ------------------------------------------------------------------
    # Read-only traversal
    # ------------------------------------------------------------------

    @property
    def children(self) -> Tuple["Octree", ...]:
        if isinstance(self.content, Branch):
            return tuple(self.content.children)
        return ()

    @property
    def com(self) -> CenterOfMass:
        """Aggregate center of mass of everything under this node."""
        content = self.content
        if isinstance(content, Branch):
            return content.com
        if isinstance(content, Leaf):
            return content.com
        return CenterOfMass.zero()

    def total_mass(self) -> float:
        return self.com.total_mass

    def walk(self) -> Iterator[Tuple[int, "Octree"]]:
        """Depth-first pre-order traversal yielding ``(depth, node)``."""
        stack = [(0, self)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            for child in reversed(node.children):
                stack.append((depth + 1, child))

    def leaves(self) -> Iterator["Octree"]:
        """Nodes whose content is a Leaf, in octant order."""
        for _, node in self.walk():
            if isinstance(node.content, Leaf):
                yield node

    @property
    def n_bodies(self) -> int:
        return sum(len(node.content.handles) for node in self.leaves())

    def depth(self) -> int:
        """Deepest level of the tree (the root alone is depth 0)."""
        return max(d for d, _ in self.walk())

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert(self, handle: Hashable, position: NDArrayFloat, mass: float) -> None:
        """
        Index ``handle`` at ``position`` with ``mass``.

        Raises
        ------
        MalformedInputError
            If the position is not a finite 3-vector or the mass is not
            finite and positive.
        DegenerateGeometryError
            If the body cannot be separated from an existing one and the
            coincident policy is ``"raise"``.
        """
        position = _as_vec3(position, "position")
        mass = float(mass)
        if not np.isfinite(mass) or mass <= 0.0:
            raise MalformedInputError(f"mass must be finite and positive, got {mass}")

        self._cover(position)
        self._sub_insert(handle, position, mass, 0)

    def insert_body(self, bodies: Any, handle: Hashable) -> bool:
        """
        Index a body by handle, reading its live snapshot from ``bodies``.

        Handles that no longer resolve are skipped. Returns True if the body
        was inserted.
        """
        snapshot = bodies.lookup(handle)
        if snapshot is None:
            return False
        position, mass = snapshot
        self.insert(handle, position, mass)
        return True

    def _cover(self, point: NDArrayFloat) -> None:
        while not self.contains(point):
            self._grow_towards(point)

    def _grow_towards(self, point: NDArrayFloat) -> None:
        """
        Double the root so that it extends towards ``point``.

        Along each axis where the point lies below the origin the new root
        extends downwards, otherwise upwards. The old root becomes the child
        on the opposite side and its aggregate seeds the new branch COM.
        """
        below = point < self.origin
        old = self._spawn(self.origin, self.size, self.content)
        old_index = int(below[0]) | int(below[1]) << 1 | int(below[2]) << 2

        self.origin = self.origin - self.size * below.astype(np.float64)
        self.size = 2.0 * self.size
        children = self._subdivide()
        children[old_index] = old
        self.content = Branch(old.com.copy(), children)

    def _separates(self, a: NDArrayFloat, b: NDArrayFloat, depth: int) -> bool:
        """Whether two points fall in different octants within the depth limit."""
        origin = self.origin
        size = self.size
        while depth < self.max_depth:
            oa = octant_index(a, origin + 0.5 * size)
            if oa != octant_index(b, origin + 0.5 * size):
                return True
            origin = origin + 0.5 * size * _OCTANT_BITS[oa]
            size *= 0.5
            depth += 1
        return False

    def _sub_insert(self, handle: Hashable, position: NDArrayFloat, mass: float, depth: int) -> None:
        content = self.content

        if isinstance(content, Empty):
            self.content = Leaf([handle], position, CenterOfMass.from_point(position, mass))

        elif isinstance(content, Leaf):
            if not self._separates(content.position, position, depth):
                self._merge_coincident(content, handle, position, mass, depth)
                return
            children = self._subdivide()
            children[self.octant(content.position)].content = content
            children[self.octant(position)]._sub_insert(handle, position, mass, depth + 1)
            com = content.com.copy()
            com.merge(position, mass)
            self.content = Branch(com, children)

        else:
            content.children[self.octant(position)]._sub_insert(handle, position, mass, depth + 1)
            content.com.merge(position, mass)

    def _merge_coincident(
        self,
        leaf: Leaf,
        handle: Hashable,
        position: NDArrayFloat,
        mass: float,
        depth: int,
    ) -> None:
        handles = list(leaf.handles) + [handle]
        message = (
            f"Bodies {handles} cannot be separated within {self.max_depth} subdivision "
            f"levels (near {leaf.position}, depth {depth})"
        )
        if self.coincident == "raise":
            raise DegenerateGeometryError(message, handles=handles, depth=depth)

        warnings.warn(message + "; merging into one leaf", RuntimeWarning, stacklevel=2)
        leaf.handles.append(handle)
        leaf.com.merge(position, mass)

    # ------------------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, Octree):
            return NotImplemented
        return (
            bool(np.array_equal(self.origin, other.origin))
            and self.size == other.size
            and self.content == other.content
        )

    __hash__ = None

    def __repr__(self) -> str:
        o = self.origin
        return f"Octree(origin=({o[0]:g}, {o[1]:g}, {o[2]:g}), size={self.size:g}, content={self.content!r})"
