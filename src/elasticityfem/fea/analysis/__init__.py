from elasticityfem.fea.analysis.dofs import UnknownIndexer
from elasticityfem.fea.analysis.model import Model

__all__ = ["Model", "UnknownIndexer"]
