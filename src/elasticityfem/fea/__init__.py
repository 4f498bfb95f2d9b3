"""
FEM Engine
==========
Assembly and solve of the plane elasticity problem.

Note: This package should be pure Python/NumPy/SciPy; mesh files are only touched
through :class:`elasticityfem.fea.pre.mesh.Mesh`.
"""
from elasticityfem.fea.errors import (
    AssemblyError,
    ConvergenceError,
    DegenerateElementError,
    FEMError,
    MeshShapeError,
)

__all__ = [
    "AssemblyError",
    "ConvergenceError",
    "DegenerateElementError",
    "FEMError",
    "MeshShapeError",
]
