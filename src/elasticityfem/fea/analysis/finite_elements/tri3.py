from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import numba as nb

from elasticityfem.config import DEGENERACY_TOLERANCE, SYMMETRY_TOLERANCE
from elasticityfem.fea.errors import AssemblyError, DegenerateElementError, MeshShapeError

if TYPE_CHECKING:
    import numpy.typing as npt


# 2 displacement components per vertex, interleaved: [u0x, u0y, u1x, u1y, u2x, u2y]
N_DOFS = 6


@nb.jit(cache=True)
def _tri3_determinants(
    x: npt.NDArray[np.float64],
    y: npt.NDArray[np.float64]
) -> tuple[float, float, float]:
    """
    Determinants of the affine map of a triangle.

    A  = [[1, 1, 1], [x0, x1, x2], [y0, y1, y2]]
    Bk = [[x1 - x0, x2 - x0], [y1 - y0, y2 - y0]]

    Args:
        x: (3, ) array of x-coordinates of the element's nodes.
        y: (3, ) array of y-coordinates of the element's nodes.

    Returns:
        det(A), det(Bk) and the squared length of the longest edge.
    """
    det_a = (x[1] * y[2] + x[2] * y[0] + x[0] * y[1]) - (x[1] * y[0] + x[2] * y[1] + x[0] * y[2])
    det_bk = (x[1] - x[0]) * (y[2] - y[0]) - (x[2] - x[0]) * (y[1] - y[0])

    diameter2 = 0.0
    for i in range(3):
        j = (i + 1) % 3
        d2 = (x[j] - x[i]) ** 2 + (y[j] - y[i]) ** 2
        if d2 > diameter2:
            diameter2 = d2

    return det_a, det_bk, diameter2


@nb.jit(cache=True)
def _tri3_phi_grad(
    x: npt.NDArray[np.float64],
    y: npt.NDArray[np.float64],
    det_a: float
) -> npt.NDArray[np.float64]:
    """
    Barycentric gradients [Φ∇] = inv(A) @ [[0, 0], [1, 0], [0, 1]].

    Only the 2nd and 3rd column of inv(A) survive the selector, so they are taken
    directly from the cofactors of A. ``det_a`` must be checked to be non-zero.

    Returns:
        (3, 2) array, row i = [dΦi/dx, dΦi/dy].
    """
    phi_grad = np.empty((3, 2), dtype=np.float64)

    phi_grad[0, 0] = (y[1] - y[2]) / det_a
    phi_grad[1, 0] = (y[2] - y[0]) / det_a
    phi_grad[2, 0] = (y[0] - y[1]) / det_a

    phi_grad[0, 1] = (x[2] - x[1]) / det_a
    phi_grad[1, 1] = (x[0] - x[2]) / det_a
    phi_grad[2, 1] = (x[1] - x[0]) / det_a

    return phi_grad


@dataclass(frozen=True)
class TriangleGeometry:
    """
    Output of the geometry kernel for one triangle.

    Attributes:
        phi_grad: (3, 2) barycentric gradients, one row per vertex.
        det_a: Signed det(A), twice the signed area.
        det_bk: Signed det of the edge-difference matrix, used for load integration.
    """
    phi_grad: npt.NDArray[np.float64]
    det_a: float
    det_bk: float

    @property
    def area(self) -> float:
        """True (unsigned) area of the triangle."""
        return 0.5 * abs(self.det_a)


def triangle_geometry(
    coords: npt.NDArray[np.float64],
    cell: int | None = None
) -> TriangleGeometry:
    """
    Compute the affine map of a triangle from its three vertices.

    Args:
        coords: (3, 2) vertex coordinates in local order.
        cell: Cell id, only used in the error message.

    Raises:
        DegenerateElementError: If the triangle has (near) zero area. The check runs
            before any inversion, so no NaN can leak into the system.
    """
    coords = np.asarray(coords, dtype=np.float64)
    if coords.shape != (3, 2):
        raise ValueError(f"Expected (3, 2) vertex coordinates, got shape {coords.shape}.")

    x = np.ascontiguousarray(coords[:, 0])
    y = np.ascontiguousarray(coords[:, 1])

    det_a, det_bk, diameter2 = _tri3_determinants(x, y)
    if not np.isfinite(det_a) or abs(det_a) <= DEGENERACY_TOLERANCE * diameter2 or diameter2 == 0.0:
        where = f" (cell {cell})" if cell is not None else ""
        raise DegenerateElementError(
            f"Degenerate triangle{where}: det(A) = {det_a:.3e} for vertices {coords.tolist()}.",
            cell=cell,
        )

    return TriangleGeometry(phi_grad=_tri3_phi_grad(x, y, det_a), det_a=det_a, det_bk=det_bk)


def strain_displacement_matrix(phi_grad: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Build [R] mapping the 6 nodal displacements to [εxx, εyy, γxy].

    Row 0 holds dΦ/dx at the x-components, row 1 dΦ/dy at the y-components and the
    shear row holds dΦ/dy at the x-components and dΦ/dx at the y-components.

    Returns:
        (3, 6) strain-displacement matrix.
    """
    R = np.zeros((3, N_DOFS), dtype=np.float64)
    R[0, 0::2] = phi_grad[:, 0]
    R[1, 1::2] = phi_grad[:, 1]
    R[2, 0::2] = phi_grad[:, 1]
    R[2, 1::2] = phi_grad[:, 0]
    return R


def check_symmetric(W: npt.NDArray[np.float64], cell: int | None = None) -> None:
    """
    Raises:
        AssemblyError: If ‖W − Wᵀ‖ exceeds the symmetry tolerance relative to ‖W‖.
    """
    scale = np.linalg.norm(W)
    asymmetry = np.linalg.norm(W - W.T)
    if asymmetry > SYMMETRY_TOLERANCE * scale:
        where = f" of cell {cell}" if cell is not None else ""
        raise AssemblyError(
            f"Local operator{where} is not symmetric: |W - W^T| = {asymmetry:.3e}, |W| = {scale:.3e}."
        )


def local_stiffness(
    geometry: TriangleGeometry,
    tensor: npt.NDArray[np.float64],
    cell: int | None = None
) -> npt.NDArray[np.float64]:
    """
    Local stiffness operator [W] = area · [R]ᵀ [C] [R].

    Args:
        geometry: Output of :func:`triangle_geometry`.
        tensor: (3, 3) material tensor of the cell.
        cell: Cell id, only used in the error message.

    Raises:
        AssemblyError: If [W] is not symmetric.

    Returns:
        (6, 6) symmetric matrix.
    """
    R = strain_displacement_matrix(geometry.phi_grad)
    C = np.asarray(tensor, dtype=np.float64).reshape(3, 3)
    W = geometry.area * (R.T @ C @ R)
    check_symmetric(W, cell=cell)
    return W


def local_load(
    geometry: TriangleGeometry,
    nodal_loads: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """
    Lumped load vector of a constant-strain triangle.

    Each vertex receives (Σ fx, Σ fy) · |det(Bk)| / 18, i.e. one third of the mean
    nodal load times the area.

    Args:
        geometry: Output of :func:`triangle_geometry`.
        nodal_loads: (3, 2) load values at the vertices.

    Returns:
        (6, ) interleaved load vector.
    """
    loads = np.asarray(nodal_loads, dtype=np.float64).reshape(3, 2)
    total = loads.sum(axis=0) * abs(geometry.det_bk) / 18.0
    return np.tile(total, 3)


class Tri3:
    """
    Three-node linear triangle for plane elasticity (constant strain triangle).
    """
    def __init__(
        self,
        index: int,
        nodes: npt.NDArray[np.int64],
        coords: npt.NDArray[np.float64],
        tensor: npt.NDArray[np.float64],
        loads: npt.NDArray[np.float64] | None = None,
    ) -> None:
        """
        Initialize the Tri3 element.

        Args:
            index: Cell id.
            nodes: Node ids in local order.
            coords: (3, 2) vertex coordinates.
            tensor: 3x3 (or 9 flat) material tensor.
            loads: (3, 2) nodal loads, zero if omitted.
        """
        self.id = index
        self.nodes = np.asarray(nodes, dtype=np.int64)
        if self.nodes.shape != (3,):
            raise MeshShapeError(f"Cell {index} has {self.nodes.size} nodes, expected 3.")

        self.tensor = np.asarray(tensor, dtype=np.float64).reshape(3, 3)
        self.loads = np.zeros((3, 2)) if loads is None else np.asarray(loads, dtype=np.float64)
        self.geometry = triangle_geometry(coords, cell=index)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, nodes={self.nodes.tolist()})"

    @property
    def area(self) -> float:
        return self.geometry.area

    @property
    def b_matrix(self) -> npt.NDArray[np.float64]:
        """Strain-displacement matrix [R] (constant for Tri3)."""
        return strain_displacement_matrix(self.geometry.phi_grad)

    def get_stiffness_matrix(self) -> npt.NDArray[np.float64]:
        return local_stiffness(self.geometry, self.tensor, cell=self.id)

    def get_load_vector(self) -> npt.NDArray[np.float64]:
        return local_load(self.geometry, self.loads)

    def get_stress(self, displacements: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Constant stress [σxx, σyy, σxy] = [C] [R] {u} for the (3, 2) vertex displacements.
        """
        u = np.asarray(displacements, dtype=np.float64).reshape(N_DOFS)
        return self.tensor @ (self.b_matrix @ u)
