from elasticityfem.fea.solvers.assembler import GlobalAssembler, GlobalSystem, SystemBuilder
from elasticityfem.fea.solvers.linear import LinearSolver, SolveResult, SolverSettings
from elasticityfem.fea.solvers.solver import SolutionReport, Solver, apply_correction

__all__ = [
    "GlobalAssembler",
    "GlobalSystem",
    "LinearSolver",
    "SolutionReport",
    "SolveResult",
    "Solver",
    "SolverSettings",
    "SystemBuilder",
    "apply_correction",
]
