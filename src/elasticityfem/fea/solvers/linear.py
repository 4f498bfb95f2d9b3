"""Sparse linear solve of the assembled system."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp
import scipy.sparse.linalg

from elasticityfem.config import (
    ABSOLUTE_TOLERANCE,
    MAX_ITERATIONS,
    RELATIVE_TOLERANCE,
    SOLVER_METHOD,
)
from elasticityfem.fea.errors import ConvergenceError

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

ITERATIVE_METHODS = {
    "cg": sp.sparse.linalg.cg,
    "bicgstab": sp.sparse.linalg.bicgstab,
}
DIRECT_METHOD = "direct"


@dataclass
class SolverSettings:
    """
    Attributes:
        method: ``"bicgstab"`` (ILU preconditioned), ``"cg"`` (Jacobi preconditioned,
            ILU is not symmetric) or ``"direct"``.
        relative_tolerance: Stop when |r| <= relative_tolerance · |b| ...
        absolute_tolerance: ... or |r| <= absolute_tolerance.
        max_iterations: Iteration limit, scipy's default when None.
        preconditioner: Precondition the iterative methods.
    """
    method: str = SOLVER_METHOD
    relative_tolerance: float = RELATIVE_TOLERANCE
    absolute_tolerance: float = ABSOLUTE_TOLERANCE
    max_iterations: int | None = MAX_ITERATIONS
    preconditioner: bool = True

    def __post_init__(self) -> None:
        if self.method not in ITERATIVE_METHODS and self.method != DIRECT_METHOD:
            raise ValueError(
                f"Unknown solver method '{self.method}'. "
                f"Choose one of {sorted([*ITERATIVE_METHODS, DIRECT_METHOD])}."
            )


@dataclass
class SolveResult:
    solution: npt.NDArray[np.float64]
    converged: bool
    iterations: int
    residual_norm: float
    reason: str = field(default="")


class LinearSolver:
    """
    Solves ``A x = b`` for the correction vector of the residual formulation.

    A failed solve is reported through :class:`SolveResult`, so the caller may retry
    with relaxed tolerances or another method; :meth:`solve_or_raise` aborts instead.
    """

    def __init__(self, settings: SolverSettings | None = None) -> None:
        self.settings = settings or SolverSettings()

    def solve(
        self,
        matrix: sp.sparse.spmatrix,
        rhs: npt.NDArray[np.float64],
    ) -> SolveResult:
        settings = self.settings
        b = np.asarray(rhs, dtype=np.float64)
        n = b.size

        if matrix.shape != (n, n):
            raise ValueError(f"Matrix shape {matrix.shape} does not match right-hand side size {n}.")

        if n == 0:
            return SolveResult(np.zeros(0), converged=True, iterations=0, residual_norm=0.0, reason="empty system")

        A = sp.sparse.csr_matrix(matrix)

        if settings.method == DIRECT_METHOD:
            x = np.atleast_1d(sp.sparse.linalg.spsolve(A.tocsc(), b))
            residual_norm = float(np.linalg.norm(b - A @ x))
            converged = bool(np.all(np.isfinite(x)))
            return SolveResult(
                x,
                converged=converged,
                iterations=1,
                residual_norm=residual_norm,
                reason="" if converged else "singular matrix",
            )

        M = None
        if settings.preconditioner and settings.method == "cg":
            diagonal = A.diagonal()
            if np.any(diagonal <= 0.0):
                return SolveResult(
                    np.zeros(n),
                    converged=False,
                    iterations=0,
                    residual_norm=float(np.linalg.norm(b)),
                    reason="matrix is not positive definite (non-positive diagonal)",
                )
            inverse_diagonal = 1.0 / diagonal
            M = sp.sparse.linalg.LinearOperator(
                (n, n), matvec=lambda v: inverse_diagonal * np.ravel(v), dtype=np.float64
            )
        elif settings.preconditioner:
            try:
                ilu = sp.sparse.linalg.spilu(A.tocsc())
            except RuntimeError as e:
                return SolveResult(
                    np.zeros(n),
                    converged=False,
                    iterations=0,
                    residual_norm=float(np.linalg.norm(b)),
                    reason=f"preconditioner failed: {e}",
                )
            M = sp.sparse.linalg.LinearOperator((n, n), matvec=ilu.solve, dtype=np.float64)

        iterations = 0

        def count(_xk) -> None:
            nonlocal iterations
            iterations += 1

        x, info = ITERATIVE_METHODS[settings.method](
            A,
            b,
            rtol=settings.relative_tolerance,
            atol=settings.absolute_tolerance,
            maxiter=settings.max_iterations,
            M=M,
            callback=count,
        )

        residual_norm = float(np.linalg.norm(b - A @ x))
        if info == 0:
            reason = ""
        elif info > 0:
            reason = f"no convergence after {info} iterations"
        else:
            reason = f"breakdown (info={info})"

        return SolveResult(
            x,
            converged=info == 0 and bool(np.all(np.isfinite(x))),
            iterations=iterations,
            residual_norm=residual_norm,
            reason=reason,
        )

    def solve_or_raise(
        self,
        matrix: sp.sparse.spmatrix,
        rhs: npt.NDArray[np.float64],
    ) -> SolveResult:
        """
        Raises:
            ConvergenceError: If the solve fails.
        """
        result = self.solve(matrix, rhs)
        if not result.converged:
            raise ConvergenceError(
                f"Linear solver failed: {result.reason}. Residual: {result.residual_norm:.6e}",
                result=result,
            )
        logger.info(f"Linear solver iterations: {result.iterations}")
        return result
