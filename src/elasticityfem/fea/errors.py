"""Exceptions raised by the assembly and solve pipeline."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from elasticityfem.fea.solvers.linear import SolveResult


class FEMError(RuntimeError):
    """Base class for all fatal errors of the elasticity pipeline."""
    pass


class MeshShapeError(FEMError, ValueError):
    """Raised when the mesh contains anything other than 3-node triangles."""
    pass


class DegenerateElementError(FEMError):
    """Raised when a triangle has (near) zero area."""

    def __init__(self, message: str, cell: int | None = None) -> None:
        super().__init__(message)
        self.cell = cell


class AssemblyError(FEMError):
    """Raised when local or global assembly detects an inconsistency."""
    pass


class ConvergenceError(FEMError):
    """Raised when the linear solver does not converge."""

    def __init__(self, message: str, result: SolveResult | None = None) -> None:
        super().__init__(message)
        self.result = result
