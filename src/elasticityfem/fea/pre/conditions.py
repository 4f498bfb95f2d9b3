"""
Node Conditions & Problem Data
==============================
Every node is either prescribed (Dirichlet) or carries two unknown displacement
components. The two cases are separate types, so a node can never be both.

The problem data functions map a node coordinate to a pair of values and are used
to fill the load, reference and boundary fields.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Union

if TYPE_CHECKING:
    import numpy as np
    import numpy.typing as npt

VectorFunction = Callable[["npt.NDArray[np.float64]"], tuple[float, float]]


@dataclass(frozen=True)
class Dirichlet:
    """Node with prescribed displacement (ux, uy)."""
    ux: float = 0.0
    uy: float = 0.0

    @property
    def values(self) -> tuple[float, float]:
        return self.ux, self.uy


@dataclass(frozen=True)
class Unknown:
    """Node whose displacement is solved for."""
    pass


NodeCondition = Union[Dirichlet, Unknown]


def constant(vx: float, vy: float) -> VectorFunction:
    """Problem data function returning the same pair everywhere."""
    def value(x: npt.NDArray[np.float64]) -> tuple[float, float]:
        return vx, vy

    return value


def zero_displacement(x: npt.NDArray[np.float64]) -> tuple[float, float]:
    """Reference solution of the unit square benchmark."""
    return 0.0, 0.0


def uniform_load(x: npt.NDArray[np.float64]) -> tuple[float, float]:
    """Body force of the unit square benchmark."""
    return -3e7, 0.0
