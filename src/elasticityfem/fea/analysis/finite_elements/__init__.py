from elasticityfem.fea.analysis.finite_elements.tri3 import Tri3, TriangleGeometry, triangle_geometry

__all__ = ["Tri3", "TriangleGeometry", "triangle_geometry"]
