"""
UNKNOWN INDEXER: Global Equation Numbering
==========================================

Maps (node, component) to a global equation index for every node whose
displacement is unknown. Fixed (Dirichlet) nodes get no index at all, so the
size of the system is exactly twice the number of non-fixed nodes.

Components are interleaved per node:

    node a (unknown, rank 0):  ux -> base + 0,  uy -> base + 1
    node b (fixed):            no index
    node c (unknown, rank 1):  ux -> base + 2,  uy -> base + 3

The map is built once after all conditions are final. Changing a condition
requires a new indexer, and every system built with the old one is stale.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from elasticityfem.fea.errors import AssemblyError
from elasticityfem.fea.pre.conditions import Dirichlet, NodeCondition

if TYPE_CHECKING:
    import numpy.typing as npt

DOF_PER_NODE = 2

# Marker for nodes without equations in the rank table
NO_INDEX = -1


class UnknownIndexer:
    """
    Immutable bijection between unknown displacement components and equation indices.

    Examples:
    ---------
    >>> from elasticityfem.fea.pre.conditions import Dirichlet, Unknown
    >>> idx = UnknownIndexer.build([Unknown(), Dirichlet(0.0, 0.0), Unknown()])
    >>> idx.index(2, 1)
    3
    >>> idx.number_of_equations
    4
    """

    def __init__(
        self,
        ranks: npt.NDArray[np.int64],
        first_index: int = 0,
        generation: int = 0,
    ) -> None:
        """
        Args:
            ranks: Position of each node among the unknown nodes, ``NO_INDEX`` for fixed nodes.
            first_index: Offset of the first equation (solver base index).
            generation: Stamp identifying the set of conditions the map was built from.
        """
        self._ranks = np.array(ranks, dtype=np.int64)
        self._ranks.setflags(write=False)
        self._unknown_nodes = np.flatnonzero(self._ranks != NO_INDEX)
        self._unknown_nodes.setflags(write=False)
        self.first_index = int(first_index)
        self.generation = int(generation)

    @classmethod
    def build(
        cls,
        conditions: Sequence[NodeCondition],
        first_index: int = 0,
        generation: int = 0,
    ) -> UnknownIndexer:
        """
        Number the unknown nodes in node-id order.

        Args:
            conditions: Condition of every node, indexed by node id.
            first_index: Offset of the first equation.
            generation: Stamp of the condition set.
        """
        fixed = np.array([isinstance(c, Dirichlet) for c in conditions], dtype=bool)
        ranks = np.full(len(conditions), NO_INDEX, dtype=np.int64)
        ranks[~fixed] = np.arange(np.count_nonzero(~fixed), dtype=np.int64)
        return cls(ranks, first_index=first_index, generation=generation)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(equations={self.number_of_equations}, "
            f"first_index={self.first_index}, generation={self.generation})"
        )

    @property
    def number_of_equations(self) -> int:
        """Twice the number of unknown nodes."""
        return DOF_PER_NODE * len(self._unknown_nodes)

    @property
    def last_index(self) -> int:
        """One past the last equation index."""
        return self.first_index + self.number_of_equations

    @property
    def unknown_nodes(self) -> npt.NDArray[np.int64]:
        """Ids of the unknown nodes in equation order."""
        return self._unknown_nodes

    def is_unknown(self, node: int) -> bool:
        return bool(self._ranks[node] != NO_INDEX)

    def index(self, node: int, component: int) -> int:
        """
        Global equation index of one displacement component.

        Args:
            node: Node id.
            component: 0 for x, 1 for y.

        Raises:
            AssemblyError: If the node is fixed; fixed nodes have no equations.
        """
        if component not in (0, 1):
            raise ValueError(f"Component must be 0 (x) or 1 (y), got {component}.")
        rank = self._ranks[node]
        if rank == NO_INDEX:
            raise AssemblyError(f"Node {node} is fixed and has no equation index.")
        return self.first_index + DOF_PER_NODE * int(rank) + component

    def node_indices(self, node: int) -> list[int]:
        """[x-index, y-index] of an unknown node."""
        return [self.index(node, 0), self.index(node, 1)]

    def local(self, index: int) -> int:
        """Position of a global equation index inside a vector of this system."""
        return index - self.first_index
