from elasticityfem.fea.post.stress import cell_stresses, nodal_stresses

__all__ = ["cell_stresses", "nodal_stresses"]
