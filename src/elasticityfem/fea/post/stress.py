from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from elasticityfem.config import FIELD_STRESS

if TYPE_CHECKING:
    import numpy.typing as npt

    from elasticityfem.fea.analysis.model import Model


def cell_stresses(model: Model) -> npt.NDArray[np.float64]:
    """
    Constant stress [σxx, σyy, σxy] of every owned cell from the current displacement.

    Ghost cells keep zeros.

    Returns:
        (m, 3) array of cell stresses.
    """
    stresses = np.zeros((model.number_of_elements, 3), dtype=np.float64)
    u = model.displacement
    for cell in model.mesh.owned_cells():
        element = model.get_element(cell)
        stresses[cell] = element.get_stress(u[element.nodes])
    return stresses


def nodal_stresses(model: Model, stresses: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Area weighted average of the cell stresses around every node.

    The result is written into the ``Stress`` node field and returned.
    """
    mesh = model.mesh
    weighted = np.zeros((mesh.number_of_nodes, 3), dtype=np.float64)
    weights = np.zeros(mesh.number_of_nodes, dtype=np.float64)

    for cell in mesh.owned_cells():
        area = model.get_element(cell).area
        nodes = mesh.cell_nodes(cell)
        weighted[nodes] += area * stresses[cell]
        weights[nodes] += area

    touched = weights > 0.0
    weighted[touched] /= weights[touched, np.newaxis]

    mesh.field(FIELD_STRESS)[:] = weighted
    return weighted
