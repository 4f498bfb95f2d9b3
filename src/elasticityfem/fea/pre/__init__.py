from elasticityfem.fea.pre.conditions import Dirichlet, NodeCondition, Unknown
from elasticityfem.fea.pre.material import ElasticMaterial, lame_parameters
from elasticityfem.fea.pre.mesh import EntityKind, Mesh

__all__ = ["Dirichlet", "ElasticMaterial", "EntityKind", "Mesh", "NodeCondition", "Unknown", "lame_parameters"]
