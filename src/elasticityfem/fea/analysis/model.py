from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np

from elasticityfem.config import (
    FIELD_BC,
    FIELD_REFERENCE,
    FIELD_RHS,
    FIELD_SIZES,
    FIELD_SOLUTION,
    FIELD_STRESS,
    FIELD_TENSOR,
)
from elasticityfem.dev import timer
from elasticityfem.fea.analysis.dofs import UnknownIndexer
from elasticityfem.fea.analysis.finite_elements.tri3 import Tri3
from elasticityfem.fea.errors import AssemblyError, MeshShapeError
from elasticityfem.fea.pre.conditions import (
    Dirichlet,
    NodeCondition,
    Unknown,
    VectorFunction,
    uniform_load,
    zero_displacement,
)
from elasticityfem.fea.pre.mesh import EntityKind, Mesh
from elasticityfem.fea.pre.material import ElasticMaterial

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class Model:
    """
    Class represent the entire plane elasticity problem.

    This class owns the mesh with its fields, the material, the condition of every
    node and the unknown index map built from those conditions.
    """
    def __init__(
        self,
        mesh: Mesh,
        material: ElasticMaterial | None = None,
    ) -> None:
        """Initialize the Model object."""
        self.mesh = mesh
        self.material = material or ElasticMaterial()

        self.conditions: list[NodeCondition] = []
        self.indexer: UnknownIndexer | None = None
        self._generation: int = 0
        self.first_index: int = 0

    @property
    def number_of_elements(self) -> int:
        """Return the number of elements in the model."""
        return self.mesh.number_of_cells

    @property
    def number_of_dirichlet_nodes(self) -> int:
        return sum(isinstance(c, Dirichlet) for c in self.conditions)

    @property
    def number_of_equations(self) -> int:
        """Return the number of unknown displacement components."""
        return self.require_indexer().number_of_equations

    @property
    def generation(self) -> int:
        """Incremented every time the node conditions change."""
        return self._generation

    def require_indexer(self) -> UnknownIndexer:
        if self.indexer is None:
            raise AssemblyError("The model is not initialized; call `initialize()` first.")
        return self.indexer

    @timer
    def initialize(
        self,
        load: VectorFunction = uniform_load,
        reference: VectorFunction = zero_displacement,
        boundary_value: VectorFunction | None = None,
        conditions: Sequence[NodeCondition] | None = None,
        first_index: int = 0,
    ) -> None:
        """
        Create the fields, classify the nodes and build the unknown index map.

        Args:
            load: Body force evaluated at every node.
            reference: Reference displacement evaluated at every node, used for the error.
            boundary_value: Prescribed displacement on boundary nodes, defaults to ``reference``.
            conditions: Explicit condition for every node. When omitted, boundary nodes
                are fixed to ``boundary_value`` and all other nodes are unknown.
            first_index: Offset of the first equation index.

        Raises:
            MeshShapeError: If an owned cell does not have exactly 3 nodes.
        """
        mesh = self.mesh
        boundary_value = boundary_value or reference

        for name in (FIELD_BC, FIELD_SOLUTION, FIELD_REFERENCE, FIELD_RHS, FIELD_STRESS):
            mesh.attach_field(name, EntityKind.NODE, FIELD_SIZES[name])
        tensor = mesh.attach_field(FIELD_TENSOR, EntityKind.CELL, FIELD_SIZES[FIELD_TENSOR])

        # 1) Material tensor on every owned cell
        c_flat = self.material.elastic_tensor.ravel()
        for cell in mesh.owned_cells():
            if len(mesh.cell_nodes(cell)) != 3:
                raise MeshShapeError(f"Non-triangular cell {cell}.")
            tensor[cell] = c_flat
        mesh.exchange_field(FIELD_TENSOR)

        # 2) Load and reference at every owned node
        rhs = mesh.field(FIELD_RHS)
        exact = mesh.field(FIELD_REFERENCE)
        for node in mesh.owned_nodes():
            x = mesh.points[node]
            rhs[node] = load(x)
            exact[node] = reference(x)

        # 3) Node conditions
        if conditions is None:
            boundary = mesh.boundary_nodes
            conditions = [
                Dirichlet(*boundary_value(mesh.points[node])) if boundary[node] else Unknown()
                for node in range(mesh.number_of_nodes)
            ]
        elif len(conditions) != mesh.number_of_nodes:
            raise ValueError(
                f"Expected {mesh.number_of_nodes} node conditions, got {len(conditions)}."
            )

        self.first_index = first_index
        self.conditions = list(conditions)
        self._apply_conditions()

        logger.info(f"Number of Dirichlet nodes: {self.number_of_dirichlet_nodes}")
        logger.info(f"Number of equations: {self.number_of_equations}")

    def set_condition(self, node: int, condition: NodeCondition) -> None:
        """
        Change the condition of one node.

        The index map is rebuilt, which invalidates all previously assembled systems.
        """
        self.require_indexer()
        self.conditions[node] = condition
        self._apply_conditions()

    def _apply_conditions(self) -> None:
        bc = self.mesh.field(FIELD_BC)
        solution = self.mesh.field(FIELD_SOLUTION)
        for node, condition in enumerate(self.conditions):
            if isinstance(condition, Dirichlet):
                bc[node] = condition.values
                solution[node] = condition.values
            else:
                bc[node] = 0.0

        self._generation += 1
        self.indexer = UnknownIndexer.build(
            self.conditions,
            first_index=self.first_index,
            generation=self._generation,
        )

    def get_element(self, cell: int) -> Tri3:
        """Build the Tri3 element of a cell from the current mesh fields."""
        nodes = self.mesh.cell_nodes(cell)
        return Tri3(
            index=cell,
            nodes=nodes,
            coords=self.mesh.cell_coords(cell),
            tensor=self.mesh.field(FIELD_TENSOR)[cell],
            loads=self.mesh.field(FIELD_RHS)[nodes],
        )

    @property
    def displacement(self) -> npt.NDArray[np.float64]:
        """(n, 2) displacement field, writable in place."""
        return self.mesh.field(FIELD_SOLUTION)

    @property
    def reference_displacement(self) -> npt.NDArray[np.float64]:
        return self.mesh.field(FIELD_REFERENCE)
