"""
Adaptive Cartesian mesh: a quadtree (2D) or octree (3D) over a periodic box.

Cells are identified by ``(level, index)`` where ``index`` is a tuple of
integer positions on the uniform lattice of that level. A cell at level
``l`` has edge length ``h = L / 2**l`` and lower corner ``index * h``.
Only active (leaf) cells are stored; their order defines the row order of
every state array living on the mesh.

Adaptation follows a flag / prepare / execute cycle:

1. ``set_flags(refine, coarsen)``
2. ``prepare_coarsening_and_refinement(min_level, max_level)``
   - level bounds are applied and refinement wins over coarsening
   - refinement is propagated so neighbouring cells differ by at most
     one level across any face (2:1 balance)
   - a coarsen flag survives only when all siblings are active leaves
     flagged for coarsening, and only if the coarse parent stays balanced
3. ``execute_coarsening_and_refinement()`` returns a ``TopologyChange``
"""

import itertools
from typing import Dict, List, NamedTuple, Optional, Tuple

import numpy as np
import numpy.typing as npt

from amrwave.constants import CHILDREN_PER_DIM, SUPPORTED_DIMENSIONS

NDArrayFloat = npt.NDArray[np.floating]
CellKey = Tuple[int, Tuple[int, ...]]


class MeshAdaptationError(RuntimeError):
    """Raised when a topology change cannot be carried out consistently."""
    pass


class TopologyChange(NamedTuple):
    """Result of one execute step: cell lists before/after and what changed."""
    old_cells: List[CellKey]
    new_cells: List[CellKey]
    refined: List[CellKey]     # Former leaves that were split
    coarsened: List[CellKey]   # New leaves created from their children

    @property
    def n_refined(self) -> int:
        return len(self.refined)

    @property
    def n_coarsened(self) -> int:
        return len(self.coarsened)


def parent_of(key: CellKey) -> Optional[CellKey]:
    level, index = key
    if level == 0:
        return None
    return level - 1, tuple(i // CHILDREN_PER_DIM for i in index)


def children_of(key: CellKey) -> List[CellKey]:
    level, index = key
    return [
        (level + 1, tuple(CHILDREN_PER_DIM * i + o for i, o in zip(index, offset)))
        for offset in itertools.product(range(CHILDREN_PER_DIM), repeat=len(index))
    ]


def _vertex_offsets(dim: int) -> np.ndarray:
    # x varies fastest, matching VTK_PIXEL / VTK_VOXEL point order
    return np.array([t[::-1] for t in itertools.product((0, 1), repeat=dim)], dtype=float)


class AdaptiveMesh:
    """
    Forest of one tree over the periodic box ``[0, length]^dim``.

    Parameters
    ----------
    dim : int
        Space dimension (2 or 3).
    length : float
        Edge length of the box.
    """

    def __init__(self, dim: int, length: float = 1.0):
        if dim not in SUPPORTED_DIMENSIONS:
            raise ValueError(f"Unsupported dimension {dim}; expected one of {SUPPORTED_DIMENSIONS}")
        if not length > 0:
            raise ValueError(f"Box length must be positive, got {length}")
        self.dim = dim
        self.length = float(length)
        self._cells: List[CellKey] = [(0, (0,) * dim)]
        self._rebuild()

    def _rebuild(self) -> None:
        self._cells.sort()
        self._index: Dict[CellKey, int] = {key: i for i, key in enumerate(self._cells)}
        n = len(self._cells)
        self._levels = np.array([key[0] for key in self._cells], dtype=np.int64)
        self._sizes = self.length / (2.0 ** self._levels)
        self._lower = np.array([key[1] for key in self._cells], dtype=float) * self._sizes[:, None]
        self.refine_flags = np.zeros(n, dtype=bool)
        self.coarsen_flags = np.zeros(n, dtype=bool)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def n_active_cells(self) -> int:
        return len(self._cells)

    @property
    def cells(self) -> List[CellKey]:
        return list(self._cells)

    @property
    def levels(self) -> np.ndarray:
        return self._levels.copy()

    @property
    def sizes(self) -> NDArrayFloat:
        """Edge length of every active cell."""
        return self._sizes.copy()

    @property
    def lower_corners(self) -> NDArrayFloat:
        return self._lower.copy()

    @property
    def centers(self) -> NDArrayFloat:
        return self._lower + 0.5 * self._sizes[:, None]

    @property
    def volumes(self) -> NDArrayFloat:
        return self._sizes ** self.dim

    def minimum_vertex_distance(self) -> float:
        """Smallest edge length over the local active cells."""
        return float(self._sizes.min())

    def index_of(self, key: CellKey) -> Optional[int]:
        return self._index.get(key)

    def cell_vertices(self, i: Optional[int] = None) -> NDArrayFloat:
        """
        Corner coordinates in VTK pixel/voxel order.

        Returns shape ``(2**dim, dim)`` for a single cell ``i``, otherwise
        ``(n_cells, 2**dim, dim)`` for all active cells.
        """
        offsets = _vertex_offsets(self.dim)
        if i is not None:
            return self._lower[i] + self._sizes[i] * offsets
        return self._lower[:, None, :] + self._sizes[:, None, None] * offsets[None, :, :]

    # ------------------------------------------------------------------
    # Topology queries
    # ------------------------------------------------------------------

    def face_neighbors(self, i: int, axis: int, side: int) -> List[int]:
        """
        Active cells sharing the face of cell ``i`` normal to ``axis``.

        ``side`` is +1 for the upper face and -1 for the lower face. The box
        is periodic in every direction. Returns one cell when the neighbour
        is as coarse or coarser, and all face-adjacent descendants when it is
        finer.
        """
        level, index = self._cells[i]
        n = 2 ** level
        neighbor = list(index)
        neighbor[axis] = (neighbor[axis] + side) % n
        key = (level, tuple(neighbor))

        j = self._index.get(key)
        if j is not None:
            return [j]

        # Coarser neighbour: walk up the ancestors of the lattice position
        lvl, pos = key
        while lvl > 0:
            lvl -= 1
            pos = tuple(p // CHILDREN_PER_DIM for p in pos)
            j = self._index.get((lvl, pos))
            if j is not None:
                return [j]

        # Finer neighbour: descendants touching the shared face
        facing_bit = 0 if side > 0 else 1
        found = self._descendants_on_face(key, axis, facing_bit)
        if not found:
            raise MeshAdaptationError(f"No face neighbour for cell {self._cells[i]} "
                                      f"(axis={axis}, side={side})")
        return sorted(found)

    def _descendants_on_face(self, key: CellKey, axis: int, bit: int) -> List[int]:
        if key[0] >= int(self._levels.max()):
            return []
        found = []
        for child in children_of(key):
            if child[1][axis] % CHILDREN_PER_DIM != bit:
                continue
            j = self._index.get(child)
            if j is not None:
                found.append(j)
            else:
                found.extend(self._descendants_on_face(child, axis, bit))
        return found

    def is_balanced(self) -> bool:
        """True if face neighbours differ by at most one level everywhere."""
        for i in range(self.n_active_cells):
            for axis in range(self.dim):
                for j in self.face_neighbors(i, axis, +1):
                    if abs(int(self._levels[i]) - int(self._levels[j])) > 1:
                        return False
        return True

    # ------------------------------------------------------------------
    # Refinement
    # ------------------------------------------------------------------

    def refine_global(self, n: int = 1) -> None:
        for _ in range(n):
            self._cells = [child for key in self._cells for child in children_of(key)]
            self._rebuild()

    def set_flags(self, refine: np.ndarray, coarsen: np.ndarray) -> None:
        refine = np.asarray(refine, dtype=bool)
        coarsen = np.asarray(coarsen, dtype=bool)
        n = self.n_active_cells
        if refine.shape != (n,) or coarsen.shape != (n,):
            raise MeshAdaptationError(
                f"Flag arrays must have shape ({n},), got {refine.shape} and {coarsen.shape}")
        self.refine_flags = refine.copy()
        self.coarsen_flags = coarsen.copy()

    def prepare_coarsening_and_refinement(self, min_level: int = 0,
                                          max_level: Optional[int] = None) -> Tuple[int, int]:
        """
        Make the current flags executable.

        Returns
        -------
        (n_refine, n_coarsen) : tuple of int
            Number of cells that will be split and number of cells that
            will be merged into their parents.
        """
        levels = self._levels
        refine = self.refine_flags.copy()
        coarsen = self.coarsen_flags.copy()

        if max_level is not None:
            refine &= levels < max_level
        coarsen &= levels > max(min_level, 0)
        coarsen &= ~refine

        # 2:1 balance: a refined cell drags coarser face neighbours along
        changed = True
        while changed:
            changed = False
            for i in np.flatnonzero(refine):
                for axis, side in self._faces():
                    for j in self.face_neighbors(i, axis, side):
                        if levels[j] < levels[i] and not refine[j]:
                            refine[j] = True
                            coarsen[j] = False
                            changed = True

        groups = self._complete_sibling_groups(coarsen)
        coarsen[:] = False
        for members in groups.values():
            coarsen[members] = True

        # Drop coarsening groups whose parent would violate the 2:1 balance
        changed = True
        while changed:
            changed = False
            for parent, members in list(groups.items()):
                if self._coarsening_unbalanced(parent, members, refine, coarsen):
                    coarsen[members] = False
                    del groups[parent]
                    changed = True

        self.refine_flags = refine
        self.coarsen_flags = coarsen
        return int(refine.sum()), int(coarsen.sum())

    def _faces(self):
        return [(axis, side) for axis in range(self.dim) for side in (-1, 1)]

    def _complete_sibling_groups(self, coarsen: np.ndarray) -> Dict[CellKey, List[int]]:
        candidates: Dict[CellKey, List[int]] = {}
        for i in np.flatnonzero(coarsen):
            candidates.setdefault(parent_of(self._cells[i]), []).append(int(i))

        n_children = CHILDREN_PER_DIM ** self.dim
        groups = {}
        for parent, members in candidates.items():
            if len(members) != n_children:
                continue
            # All siblings must be active leaves
            if all(child in self._index for child in children_of(parent)):
                groups[parent] = sorted(members)
        return groups

    def _coarsening_unbalanced(self, parent: CellKey, members: List[int],
                               refine: np.ndarray, coarsen: np.ndarray) -> bool:
        child_level = parent[0] + 1
        member_set = set(members)
        for i in members:
            for axis, side in self._faces():
                for j in self.face_neighbors(i, axis, side):
                    if j in member_set:
                        continue
                    new_level = int(self._levels[j])
                    if refine[j]:
                        new_level += 1
                    elif coarsen[j]:
                        new_level -= 1
                    if new_level > child_level:
                        return True
        return False

    def execute_coarsening_and_refinement(self) -> TopologyChange:
        """Apply the prepared flags and rebuild the cell list."""
        refine = self.refine_flags
        coarsen = self.coarsen_flags
        if np.any(refine & coarsen):
            raise MeshAdaptationError("A cell is flagged for both refinement and coarsening")

        old_cells = list(self._cells)
        refined = [old_cells[i] for i in np.flatnonzero(refine)]

        parent_set = {parent_of(old_cells[i]) for i in np.flatnonzero(coarsen)}
        if None in parent_set:
            raise MeshAdaptationError("The root cell cannot be coarsened")
        parents = sorted(parent_set)
        for parent in parents:
            for child in children_of(parent):
                j = self._index.get(child)
                if j is None or not coarsen[j]:
                    raise MeshAdaptationError(
                        f"Incomplete sibling group under {parent}; "
                        f"prepare_coarsening_and_refinement() must run first")

        new_cells: List[CellKey] = []
        for i, key in enumerate(old_cells):
            if refine[i]:
                new_cells.extend(children_of(key))
            elif not coarsen[i]:
                new_cells.append(key)
        new_cells.extend(parents)

        self._cells = new_cells
        self._rebuild()
        return TopologyChange(old_cells=old_cells, new_cells=list(self._cells),
                              refined=refined, coarsened=parents)

    def __repr__(self) -> str:
        return (f"AdaptiveMesh(dim={self.dim}, cells={self.n_active_cells}, "
                f"levels={int(self._levels.min())}..{int(self._levels.max())})")
