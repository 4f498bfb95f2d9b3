from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Iterator

import meshio
import numpy as np

from elasticityfem.config import FIELD_GHOST, FIELD_SIZES
from elasticityfem.fea.errors import MeshShapeError

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

TRIANGLE_CELL_TYPE = "triangle"

# Lower-dimensional blocks written by mesh generators (boundary edges, corner points).
IGNORED_CELL_TYPES = {"vertex", "line", "line3"}


class EntityKind(StrEnum):
    NODE = "node"
    CELL = "cell"


class Mesh:
    """
    Unstructured triangular mesh with typed per-entity field storage.

    Nodes and cells are identified by their zero-based position. Every field is an
    ``(n_entities, size)`` float array owned by the mesh, so all reads and writes of
    tensor, boundary, load and displacement data go through :meth:`field`.
    """

    def __init__(
        self,
        points: list | npt.NDArray[np.float64],
        cells: list | npt.NDArray[np.int64],
        cell_ghost: npt.NDArray[np.bool_] | None = None,
        node_ghost: npt.NDArray[np.bool_] | None = None,
        filename: str | None = None,
    ) -> None:
        """
        Initialize the mesh.

        Args:
            points: (n, 2) node coordinates. Extra coordinate columns are dropped.
            cells: (m, 3) node ids of every triangle, order-significant.
            cell_ghost: Optional (m, ) flags marking cells owned by another partition.
            node_ghost: Optional (n, ) flags marking nodes owned by another partition.
            filename: Source file, if the mesh was loaded from disk.

        Raises:
            MeshShapeError: If a cell does not reference exactly 3 nodes.
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] < 2:
            raise MeshShapeError(f"Expected (n, 2) node coordinates, got shape {points.shape}.")

        cells = np.asarray(cells, dtype=np.int64)
        if cells.ndim != 2 or cells.shape[1] != 3:
            raise MeshShapeError(
                f"Non-triangular cell: expected connectivity of shape (m, 3), got {cells.shape}."
            )
        if cells.size and (cells.min() < 0 or cells.max() >= len(points)):
            raise MeshShapeError("Cell connectivity references a node that does not exist.")

        self.points = np.ascontiguousarray(points[:, :2])
        self.cells = cells
        self.filename = filename

        self.cell_ghost = self._flags(cell_ghost, self.number_of_cells)
        self.node_ghost = self._flags(node_ghost, self.number_of_nodes)

        self._fields: dict[str, tuple[EntityKind, npt.NDArray[np.float64]]] = {}
        self._boundary_nodes: npt.NDArray[np.bool_] | None = None

    def __repr__(self) -> str:
        """String representation of the mesh."""
        return f"{self.__class__.__name__}(nodes={self.number_of_nodes}, cells={self.number_of_cells})"

    @staticmethod
    def _flags(values: npt.ArrayLike | None, n: int) -> npt.NDArray[np.bool_]:
        if values is None:
            return np.zeros(n, dtype=bool)
        flags = np.asarray(values, dtype=bool).reshape(-1)
        if flags.size != n:
            raise ValueError(f"Expected {n} ghost flags, got {flags.size}.")
        return flags

    @classmethod
    def from_file(cls, filename: str) -> Mesh:
        """
        Load a triangular mesh and its attached data arrays from any format meshio reads.

        Point and cell data arrays are attached as fields; an array named ``ghost``
        marks ghost entities instead.

        Raises:
            MeshShapeError: If the file contains 2D or 3D cells other than triangles.
        """
        raw = meshio.read(filename)

        triangle_blocks: list[int] = []
        for i, block in enumerate(raw.cells):
            if block.type == TRIANGLE_CELL_TYPE:
                triangle_blocks.append(i)
            elif block.type not in IGNORED_CELL_TYPES:
                raise MeshShapeError(
                    f"Non-triangular cell of type '{block.type}' found in '{filename}'."
                )

        if not triangle_blocks:
            raise MeshShapeError(f"No triangular cells found in '{filename}'.")

        cells = np.vstack([raw.cells[i].data for i in triangle_blocks])

        point_data = dict(raw.point_data)
        cell_data = {
            name: np.concatenate([np.asarray(arrays[i]) for i in triangle_blocks])
            for name, arrays in raw.cell_data.items()
        }

        node_ghost = point_data.pop(FIELD_GHOST, None)
        cell_ghost = cell_data.pop(FIELD_GHOST, None)

        mesh = cls(
            points=raw.points,
            cells=cells,
            cell_ghost=cell_ghost,
            node_ghost=node_ghost,
            filename=filename,
        )

        for kind, data in ((EntityKind.NODE, point_data), (EntityKind.CELL, cell_data)):
            for name, values in data.items():
                values = np.asarray(values)
                if not np.issubdtype(values.dtype, np.number):
                    continue
                values = values.reshape(len(values), -1)
                # drop the padding column of 2-component arrays
                if name in FIELD_SIZES:
                    values = values[:, :FIELD_SIZES[name]]
                mesh.attach_field(name, kind, values.shape[1])[:] = values

        logger.info(
            f"Loaded mesh '{filename}': {mesh.number_of_cells} cells, {mesh.number_of_nodes} nodes."
        )
        return mesh

    @property
    def number_of_nodes(self) -> int:
        """Number of nodes in the mesh, ghosts included."""
        return len(self.points)

    @property
    def number_of_cells(self) -> int:
        """Number of cells in the mesh, ghosts included."""
        return len(self.cells)

    def owned_cells(self) -> Iterator[int]:
        """Ids of the cells owned by this partition, in enumeration order."""
        return (int(c) for c in np.flatnonzero(~self.cell_ghost))

    def owned_nodes(self) -> Iterator[int]:
        """Ids of the nodes owned by this partition."""
        return (int(n) for n in np.flatnonzero(~self.node_ghost))

    def cell_nodes(self, cell: int) -> npt.NDArray[np.int64]:
        """Node ids of a cell in local order."""
        return self.cells[cell]

    def cell_coords(self, cell: int) -> npt.NDArray[np.float64]:
        """(3, 2) vertex coordinates of a cell in local order."""
        return self.points[self.cells[cell]]

    @property
    def boundary_nodes(self) -> npt.NDArray[np.bool_]:
        """
        Boundary classification of every node.

        A node lies on the boundary when it is an endpoint of an edge that belongs to
        exactly one cell.
        """
        if self._boundary_nodes is None:
            flags = np.zeros(self.number_of_nodes, dtype=bool)
            if self.number_of_cells:
                edges = self.cells[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2)
                edges = np.sort(edges, axis=1)
                unique_edges, counts = np.unique(edges, axis=0, return_counts=True)
                flags[unique_edges[counts == 1].ravel()] = True
            self._boundary_nodes = flags
        return self._boundary_nodes

    def _count(self, kind: EntityKind) -> int:
        return self.number_of_nodes if kind == EntityKind.NODE else self.number_of_cells

    def attach_field(
        self,
        name: str,
        kind: EntityKind,
        size: int,
        fill: float = 0.0,
    ) -> npt.NDArray[np.float64]:
        """
        Create (or reset) a field holding ``size`` reals per entity.

        Returns:
            The (n_entities, size) storage array, writable in place.
        """
        values = np.full((self._count(kind), size), fill, dtype=np.float64)
        self._fields[name] = (EntityKind(kind), values)
        return values

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def field(self, name: str) -> npt.NDArray[np.float64]:
        """
        Storage array of a field.

        Raises:
            KeyError: If no field with this name is attached.
        """
        try:
            return self._fields[name][1]
        except KeyError:
            raise KeyError(f"Field '{name}' is not attached to the mesh.") from None

    def field_kind(self, name: str) -> EntityKind:
        return self._fields[name][0]

    def field_names(self, kind: EntityKind | None = None) -> list[str]:
        return [name for name, (k, _) in self._fields.items() if kind is None or k == kind]

    def exchange_field(self, name: str) -> None:
        """
        Synchronise a field across partition boundaries.

        A mesh loaded in one process owns every entity, so only the presence of the
        field is checked here. A distributed mesh overrides this hook.
        """
        self.field(name)
        logger.debug(f"Field '{name}' exchanged (single partition).")

    def displaced(self, field_name: str, scale: float = 1.0) -> Mesh:
        """
        Copy of the mesh with the node coordinates moved by a 2-component node field.

        All fields are copied along.
        """
        displacement = self.field(field_name)
        if self.field_kind(field_name) != EntityKind.NODE or displacement.shape[1] < 2:
            raise ValueError(f"Field '{field_name}' is not a 2-component node field.")

        moved = Mesh(
            points=self.points + scale * displacement[:, :2],
            cells=self.cells.copy(),
            cell_ghost=self.cell_ghost.copy(),
            node_ghost=self.node_ghost.copy(),
            filename=self.filename,
        )
        for name, (kind, values) in self._fields.items():
            moved._fields[name] = (kind, values.copy())
        return moved

    def to_meshio(self) -> meshio.Mesh:
        """Convert the mesh and all of its fields into a :class:`meshio.Mesh`."""
        points = np.column_stack((self.points, np.zeros(self.number_of_nodes)))

        point_data = {FIELD_GHOST: self.node_ghost.astype(np.float64)}
        cell_data = {FIELD_GHOST: [self.cell_ghost.astype(np.float64)]}
        for name, (kind, values) in self._fields.items():
            array = values[:, 0] if values.shape[1] == 1 else values
            if kind == EntityKind.NODE:
                point_data[name] = array
            else:
                cell_data[name] = [array]

        return meshio.Mesh(
            points=points,
            cells=[(TRIANGLE_CELL_TYPE, self.cells)],
            point_data=point_data,
            cell_data=cell_data,
        )

    def save(self, filename: str) -> None:
        """Write the mesh and all of its fields; the format follows the file extension."""
        meshio.write(filename, self.to_meshio())
        logger.info(f"Mesh saved to: {filename}")
