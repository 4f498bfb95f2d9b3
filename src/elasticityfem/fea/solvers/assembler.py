"""
ASSEMBLY: Global Residual and Jacobian with Boundary Elimination
================================================================

The assembled system is the residual R(u) = K_uu·u + K_uf·u_f − f over the
unknown displacement components, together with its Jacobian K_uu.

For every owned cell and every local vertex k:

    vertex k fixed:    no row. Its prescribed value times the coupling block
                       W[j, k] is added to the rows of every other vertex j
                       that is not fixed (static condensation).
    vertex k unknown:  row block W[k, m] times the current displacement of
                       every unknown vertex m goes into its own rows, W[k, m]
                       enters the Jacobian, and the lumped load is subtracted.

All writes are additive, so cells may be assembled in any order or in
disjoint chunks whose builders are merged afterwards.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

import numpy as np
import scipy as sp

from elasticityfem.config import FIELD_BC
from elasticityfem.dev import timer
from elasticityfem.fea.errors import AssemblyError

if TYPE_CHECKING:
    import numpy.typing as npt

    from elasticityfem.fea.analysis.model import Model

logger = logging.getLogger(__name__)


@dataclass
class GlobalSystem:
    """
    Assembled linear system over the unknown index range.

    Attributes:
        jacobian: (n, n) CSR matrix K_uu.
        residual: (n, ) residual vector evaluated at the current displacement.
        first_index: Equation index of the first row.
        generation: Generation of the index map the system was built with.
    """
    jacobian: sp.sparse.csr_matrix
    residual: npt.NDArray[np.float64]
    first_index: int
    generation: int

    @property
    def size(self) -> int:
        return len(self.residual)


class SystemBuilder:
    """
    Accumulates COO triplets and residual entries; duplicates are summed on :meth:`build`.
    """

    def __init__(self, size: int, first_index: int = 0, generation: int = 0) -> None:
        self.size = size
        self.first_index = first_index
        self.generation = generation

        self._rows: list[int] = []
        self._cols: list[int] = []
        self._data: list[float] = []
        self.residual = np.zeros(size, dtype=np.float64)

    def add_matrix(self, row: int, col: int, value: float) -> None:
        """Add ``value`` to the Jacobian entry at global equation indices (row, col)."""
        self._rows.append(row - self.first_index)
        self._cols.append(col - self.first_index)
        self._data.append(value)

    def add_residual(self, row: int, value: float) -> None:
        """Add ``value`` to the residual at global equation index ``row``."""
        self.residual[row - self.first_index] += value

    def merge(self, other: SystemBuilder) -> SystemBuilder:
        """
        Add the partial sums of another builder into this one.

        Raises:
            AssemblyError: If the builders belong to different systems.
        """
        if (other.size, other.first_index, other.generation) != (self.size, self.first_index, self.generation):
            raise AssemblyError("Cannot merge partial systems built for different index maps.")
        self._rows.extend(other._rows)
        self._cols.extend(other._cols)
        self._data.extend(other._data)
        self.residual += other.residual
        return self

    def build(self) -> GlobalSystem:
        jacobian = sp.sparse.coo_matrix(
            (
                np.asarray(self._data, dtype=np.float64),
                (np.asarray(self._rows, dtype=np.int64), np.asarray(self._cols, dtype=np.int64)),
            ),
            shape=(self.size, self.size),
        ).tocsr()
        jacobian.sum_duplicates()
        return GlobalSystem(
            jacobian=jacobian,
            residual=self.residual.copy(),
            first_index=self.first_index,
            generation=self.generation,
        )


class GlobalAssembler:
    """
    Distributes local Tri3 contributions into the global residual and Jacobian.
    """

    def __init__(self, model: Model) -> None:
        self.model = model

    def new_builder(self) -> SystemBuilder:
        indexer = self.model.require_indexer()
        return SystemBuilder(
            size=indexer.number_of_equations,
            first_index=indexer.first_index,
            generation=indexer.generation,
        )

    def assemble_partial(self, cells: Iterable[int]) -> SystemBuilder:
        """
        Assemble the contributions of a subset of cells into a fresh builder.

        Ghost cells are skipped.
        """
        builder = self.new_builder()
        ghost = self.model.mesh.cell_ghost
        for cell in cells:
            if ghost[cell]:
                continue
            self._assemble_cell(cell, builder)
        return builder

    @timer
    def assemble(self, cells: Iterable[int] | None = None) -> GlobalSystem:
        """
        Assemble the global system over all owned cells (or the given ones).
        """
        if cells is None:
            cells = self.model.mesh.owned_cells()
        system = self.assemble_partial(cells).build()
        logger.debug(f"Assembled system with {system.size} equations, {system.jacobian.nnz} non-zeros.")
        return system

    def _assemble_cell(self, cell: int, builder: SystemBuilder) -> None:
        model = self.model
        indexer = model.require_indexer()

        element = model.get_element(cell)
        W = element.get_stiffness_matrix()
        f = element.get_load_vector()

        nodes = element.nodes
        unknown = [indexer.is_unknown(node) for node in nodes]
        u = model.displacement
        bc = model.mesh.field(FIELD_BC)

        for k in range(3):
            if not unknown[k]:
                # Move the known term to the right-hand side of the other vertices
                bc_x, bc_y = bc[nodes[k]]
                for j in range(3):
                    if j == k or not unknown[j]:
                        continue
                    for a in range(2):
                        row = indexer.index(nodes[j], a)
                        builder.add_residual(
                            row,
                            bc_x * W[2 * j + a, 2 * k] + bc_y * W[2 * j + a, 2 * k + 1],
                        )
                continue

            for a in range(2):
                row = indexer.index(nodes[k], a)
                r = 2 * k + a
                for m in range(3):
                    if not unknown[m]:
                        continue
                    for b in range(2):
                        col = indexer.index(nodes[m], b)
                        w = W[r, 2 * m + b]
                        builder.add_matrix(row, col, w)
                        builder.add_residual(row, w * u[nodes[m], b])
                builder.add_residual(row, -f[r])
