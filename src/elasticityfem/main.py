"""
Command-Line Driver
===================
Runs the full pipeline on one mesh file:

    load mesh -> init fields -> save init snapshot -> assemble -> solve
    -> save result and deformed snapshots

Usage:
    $ python -m elasticityfem <mesh_file>
"""
from __future__ import annotations

import logging
import sys
from typing import Sequence

import meshio

from elasticityfem import config
from elasticityfem.logging_config import setup_logging
from elasticityfem.fea.errors import FEMError
from elasticityfem.fea.analysis.model import Model
from elasticityfem.fea.pre.conditions import uniform_load, zero_displacement
from elasticityfem.fea.pre.material import ElasticMaterial
from elasticityfem.fea.pre.mesh import Mesh
from elasticityfem.fea.solvers.solver import Solver

logger = logging.getLogger(__name__)

USAGE = "Usage: elasticityfem <mesh_file>"


def run(mesh_file: str) -> None:
    """
    Solve the benchmark problem on ``mesh_file`` and write the snapshots.

    Raises:
        FEMError: On any fatal mesh, assembly or solver error.
    """
    output_dir = config.get_output_dir()
    output_dir.mkdir(parents=True, exist_ok=True)

    mesh = Mesh.from_file(mesh_file)
    logger.info(f"Number of cells: {mesh.number_of_cells}")
    logger.info(f"Number of nodes: {mesh.number_of_nodes}")

    material = ElasticMaterial(
        young_modulus=config.YOUNG_MODULUS,
        poisson_ratio=config.POISSON_RATIO,
    )
    model = Model(mesh=mesh, material=material)
    model.initialize(load=uniform_load, reference=zero_displacement)
    mesh.save(str(output_dir / config.INIT_SNAPSHOT))

    solver = Solver(model)
    solver.assemble()
    solver.solve()
    solver.save_solution(
        str(output_dir / config.RESULT_SNAPSHOT),
        deformed_filename=str(output_dir / config.DEFORMED_SNAPSHOT),
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print(USAGE)
        return 1

    setup_logging(level=config.get_log_level(), log_file=config.get_log_file())

    try:
        run(args[0])
    except FEMError as e:
        logger.error(str(e))
        return 1
    except (OSError, ValueError, meshio.ReadError) as e:
        logger.error(f"Could not process mesh file '{args[0]}': {e}")
        return 1

    return 0
