from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from elasticityfem.config import YOUNG_MODULUS, POISSON_RATIO

if TYPE_CHECKING:
    import numpy.typing as npt


def lame_parameters(young_modulus: float, poisson_ratio: float) -> tuple[float, float]:
    """
    Convert Young's modulus and Poisson's ratio to the Lamé parameters.

    Args:
        young_modulus: Young's modulus E in Pa.
        poisson_ratio: Poisson's ratio ν.

    Returns:
        A tuple (λ, μ).
    """
    lam = young_modulus * poisson_ratio / (1.0 + poisson_ratio) / (1.0 - 2.0 * poisson_ratio)
    mu = young_modulus / 2.0 / (1.0 + poisson_ratio)
    return lam, mu


class ElasticMaterial:
    """
    Isotropic linear elastic material in plane strain.
    """
    def __init__(
        self,
        young_modulus: float = YOUNG_MODULUS,
        poisson_ratio: float = POISSON_RATIO,
        name: str = "Elastic",
    ) -> None:
        """
        Initialize the material.

        Args:
            young_modulus: Young's modulus E in Pa, must be positive.
            poisson_ratio: Poisson's ratio ν, must lie in (-1, 0.5).
            name: The name of the material.

        Raises:
            ValueError: If the constants do not describe a stable material.
        """
        if young_modulus <= 0.0:
            raise ValueError(f"Young's modulus must be positive, got {young_modulus}.")
        if not -1.0 < poisson_ratio < 0.5:
            raise ValueError(f"Poisson's ratio must lie in (-1, 0.5), got {poisson_ratio}.")

        self.name = name
        self.young_modulus = young_modulus
        self.poisson_ratio = poisson_ratio

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', E={self.young_modulus}, nu={self.poisson_ratio})"

    @property
    def lame_parameters(self) -> tuple[float, float]:
        return lame_parameters(self.young_modulus, self.poisson_ratio)

    @property
    def elastic_tensor(self) -> npt.NDArray[np.float64]:
        """
        Hooke's law in Voigt notation, [σxx, σyy, σxy] = [C] [εxx, εyy, γxy].

        [C] = [[2μ + λ, λ,      0],
               [λ,      2μ + λ, 0],
               [0,      0,      μ]]

        Returns:
            (3, 3) symmetric material tensor.
        """
        lam, mu = self.lame_parameters
        return np.array([
            [2.0 * mu + lam, lam, 0.0],
            [lam, 2.0 * mu + lam, 0.0],
            [0.0, 0.0, mu],
        ], dtype=np.float64)
