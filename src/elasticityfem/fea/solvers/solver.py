from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from elasticityfem.config import FIELD_SOLUTION
from elasticityfem.dev import timer
from elasticityfem.fea.errors import AssemblyError
from elasticityfem.fea.post.stress import cell_stresses, nodal_stresses
from elasticityfem.fea.solvers.assembler import GlobalAssembler, GlobalSystem
from elasticityfem.fea.solvers.linear import LinearSolver, SolverSettings

if TYPE_CHECKING:
    import numpy.typing as npt

    from elasticityfem.fea.analysis.model import Model

logger = logging.getLogger(__name__)


def apply_correction(model: Model, correction: npt.NDArray[np.float64]) -> float:
    """
    Subtract the solved correction from the displacement of every unknown node.

    The solve of the residual system yields a correction, not the solution itself:
    u ← u − δu.

    Args:
        model: Initialized model, its displacement field is updated in place.
        correction: Correction vector over the unknown index range.

    Returns:
        Maximum component-wise difference to the reference displacement over the
        owned unknown nodes (C-norm error). Fixed nodes are excluded.
    """
    indexer = model.require_indexer()
    correction = np.asarray(correction, dtype=np.float64)
    if correction.shape != (indexer.number_of_equations,):
        raise AssemblyError(
            f"Correction of shape {correction.shape} does not match "
            f"{indexer.number_of_equations} equations."
        )

    u = model.displacement
    exact = model.reference_displacement
    ghost = model.mesh.node_ghost

    c_norm = 0.0
    for node in indexer.unknown_nodes:
        ix, iy = indexer.node_indices(node)
        u[node, 0] -= correction[indexer.local(ix)]
        u[node, 1] -= correction[indexer.local(iy)]
        if ghost[node]:
            continue
        c_norm = max(c_norm, abs(u[node, 0] - exact[node, 0]))
        c_norm = max(c_norm, abs(u[node, 1] - exact[node, 1]))

    return float(c_norm)


@dataclass
class SolutionReport:
    error_c_norm: float
    iterations: int
    residual_norm: float
    number_of_equations: int


class Solver:
    """
    Class for a FEM solver.

    Assembles the condensed system of a model, solves it and updates the displacement.
    """

    def __init__(
        self,
        model: Model,
        settings: SolverSettings | None = None,
    ) -> None:
        """
        Initialize the solver with a model.

        Args:
            model: The initialized model to be solved.
            settings: Linear solver settings, configuration defaults when omitted.
        """
        self.model = model
        self.assembler = GlobalAssembler(model)
        self.linear_solver = LinearSolver(settings)
        self.system: GlobalSystem | None = None

    def assemble(self) -> GlobalSystem:
        """
        Assemble the global residual and Jacobian for the current displacement.
        """
        self.system = self.assembler.assemble()
        return self.system

    def _current_system(self) -> GlobalSystem:
        if self.system is None:
            return self.assemble()
        if self.system.generation != self.model.require_indexer().generation:
            raise AssemblyError(
                "The assembled system was built for outdated node conditions; assemble again."
            )
        return self.system

    @timer
    def solve(self) -> SolutionReport:
        """
        Solve the assembled system and apply the correction.

        Raises:
            ConvergenceError: If the linear solver fails. The solver settings may be
                changed through ``self.linear_solver.settings`` before retrying.
        """
        system = self._current_system()
        result = self.linear_solver.solve_or_raise(system.jacobian, system.residual)

        error = apply_correction(self.model, result.solution)
        # The system belongs to the old displacement from here on
        self.system = None

        nodal_stresses(self.model, cell_stresses(self.model))

        logger.info(f"|err|_C = {error:.6e}")
        return SolutionReport(
            error_c_norm=error,
            iterations=result.iterations,
            residual_norm=result.residual_norm,
            number_of_equations=system.size,
        )

    @timer
    def save_solution(self, filename: str, deformed_filename: str | None = None) -> None:
        """
        Save the mesh with all fields and, optionally, a copy moved by the displacement.
        """
        mesh = self.model.mesh
        mesh.save(filename)
        if deformed_filename is not None:
            mesh.displaced(FIELD_SOLUTION).save(deformed_filename)
