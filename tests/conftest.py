import numpy as np
import pytest

from elasticityfem.fea.pre.mesh import Mesh


def square_mesh(n: int) -> Mesh:
    """
    Structured mesh of the unit square: n x n squares, each split into two triangles.

    Node (i, j) sits at (i/n, j/n) and has id j*(n+1) + i. All triangles are
    counter-clockwise.
    """
    xs = np.linspace(0.0, 1.0, n + 1)
    X, Y = np.meshgrid(xs, xs)
    points = np.column_stack((X.ravel(), Y.ravel()))

    cells = []
    for j in range(n):
        for i in range(n):
            a = j * (n + 1) + i
            b = a + 1
            c = a + n + 2
            d = a + n + 1
            cells.append([a, b, c])
            cells.append([a, c, d])
    return Mesh(points=points, cells=np.array(cells))


@pytest.fixture
def unit_square():
    """The 2-triangle unit square: nodes (0,0), (1,0), (0,1), (1,1); cells [0, 1, 3], [0, 3, 2]."""
    return square_mesh(1)


@pytest.fixture
def grid4():
    return square_mesh(4)
