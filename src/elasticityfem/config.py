"""
Configuration & Constants
=========================
This module serves as the central registry for file names and global constants.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (material data, solver tolerances,
   field names) from being scattered throughout the code.
2. Deployment: Output directory, log level and log file can be overridden from the
   environment without touching the code.

Exports:
    YOUNG_MODULUS, POISSON_RATIO: Default isotropic material.
    RELATIVE_TOLERANCE, ABSOLUTE_TOLERANCE, SOLVER_METHOD: Linear solver defaults.
    get_output_dir, get_log_level, get_log_file: Environment overrides for the CLI.
"""
import logging
import os
from pathlib import Path

# Material
YOUNG_MODULUS: float = 3.5e6
POISSON_RATIO: float = 0.3

# Linear solver
SOLVER_METHOD: str = "bicgstab"
RELATIVE_TOLERANCE: float = 1e-12
ABSOLUTE_TOLERANCE: float = 1e-15
MAX_ITERATIONS: int | None = None

# Element checks
DEGENERACY_TOLERANCE: float = 1e-14  # relative to squared element diameter
SYMMETRY_TOLERANCE: float = 1e-10

# Field names (also used as array names in the saved snapshots)
FIELD_TENSOR: str = "ELASTIC_TENSOR"
FIELD_BC: str = "BOUNDARY_CONDITION"
FIELD_RHS: str = "RHS"
FIELD_SOLUTION: str = "Displacement"
FIELD_REFERENCE: str = "Displacement_Analytical"
FIELD_STRESS: str = "Stress"
FIELD_GHOST: str = "ghost"

# Components per entity; VTK writers pad 2-component arrays to 3
FIELD_SIZES: dict[str, int] = {
    FIELD_TENSOR: 9,
    FIELD_BC: 2,
    FIELD_RHS: 2,
    FIELD_SOLUTION: 2,
    FIELD_REFERENCE: 2,
    FIELD_STRESS: 3,
}

# Snapshots
INIT_SNAPSHOT: str = "init.vtk"
RESULT_SNAPSHOT: str = "res.vtk"
DEFORMED_SNAPSHOT: str = "deformed.vtk"


def get_output_dir() -> Path:
    """
    Directory for the snapshots, ``$ELASTICITYFEM_OUTPUT_DIR`` or the current directory.
    """
    return Path(os.environ.get("ELASTICITYFEM_OUTPUT_DIR", os.getcwd()))


def get_log_level() -> int:
    """
    Log level from ``$ELASTICITYFEM_LOG_LEVEL`` (name like ``DEBUG``), INFO by default.
    """
    name = os.environ.get("ELASTICITYFEM_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_log_file() -> str | None:
    """Optional log file from ``$ELASTICITYFEM_LOG_FILE``."""
    return os.environ.get("ELASTICITYFEM_LOG_FILE") or None
