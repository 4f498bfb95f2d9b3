"""
elasticityfem: plane linear elasticity on unstructured triangular meshes.
"""
__version__ = "0.1.0"
