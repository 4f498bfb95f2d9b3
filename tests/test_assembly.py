import numpy as np
import pytest

from elasticityfem.fea.analysis.model import Model
from elasticityfem.fea.errors import AssemblyError
from elasticityfem.fea.pre.conditions import Dirichlet, Unknown, constant, zero_displacement
from elasticityfem.fea.pre.mesh import Mesh
from elasticityfem.fea.solvers.assembler import GlobalAssembler
from elasticityfem.fea.solvers.linear import SolverSettings
from elasticityfem.fea.solvers.solver import Solver

from conftest import square_mesh

LOAD = constant(1.0e5, -2.0e5)


def initialized(mesh, conditions=None, load=LOAD, reference=zero_displacement):
    model = Model(mesh)
    model.initialize(load=load, reference=reference, conditions=conditions)
    return model


def test_number_of_equations(grid4):
    """4 x 4 grid: 9 interior nodes, 16 boundary nodes -> 18 equations."""
    model = initialized(grid4)
    system = GlobalAssembler(model).assemble()

    assert model.number_of_dirichlet_nodes == 16
    assert model.number_of_equations == 18
    assert system.jacobian.shape == (18, 18)
    assert system.residual.shape == (18,)


def test_jacobian_is_symmetric_positive_definite(grid4):
    system = GlobalAssembler(initialized(grid4)).assemble()
    K = system.jacobian.toarray()

    np.testing.assert_allclose(K, K.T, rtol=1e-12, atol=1e-9)
    assert np.all(np.linalg.eigvalsh(K) > 0.0)


def test_assembly_is_invariant_to_cell_order():
    """
    WHAT IS THIS TEST?
    ==================
    The global system is a sum over cells, so enumerating the cells in a different
    order, or starting each triangle at a different vertex, must not change it.
    """
    mesh = square_mesh(3)
    reference = GlobalAssembler(initialized(mesh)).assemble()

    rng = np.random.default_rng(0)
    permutation = rng.permutation(mesh.number_of_cells)
    shifted = np.roll(mesh.cells[permutation], shift=1, axis=1)
    other = GlobalAssembler(initialized(Mesh(points=mesh.points, cells=shifted))).assemble()

    np.testing.assert_allclose(other.jacobian.toarray(), reference.jacobian.toarray(), rtol=1e-12, atol=1e-6)
    np.testing.assert_allclose(other.residual, reference.residual, rtol=1e-12, atol=1e-6)


def test_merged_partial_systems_match_full_assembly():
    """Disjoint chunks of cells assembled separately and merged give the full system."""
    mesh = square_mesh(3)
    assembler = GlobalAssembler(initialized(mesh))
    full = assembler.assemble()

    cells = list(mesh.owned_cells())
    builder = assembler.assemble_partial(cells[::2])
    builder.merge(assembler.assemble_partial(cells[1::2]))
    merged = builder.build()

    np.testing.assert_allclose(merged.jacobian.toarray(), full.jacobian.toarray(), rtol=1e-12, atol=1e-6)
    np.testing.assert_allclose(merged.residual, full.residual, rtol=1e-12, atol=1e-6)


def test_ghost_cells_are_skipped():
    mesh = square_mesh(3)
    ghost = np.zeros(mesh.number_of_cells, dtype=bool)
    ghost[[0, 5]] = True

    with_ghosts = GlobalAssembler(
        initialized(Mesh(points=mesh.points, cells=mesh.cells, cell_ghost=ghost))
    ).assemble()

    assembler = GlobalAssembler(initialized(mesh))
    without = assembler.assemble(cells=np.flatnonzero(~ghost))

    np.testing.assert_allclose(with_ghosts.jacobian.toarray(), without.jacobian.toarray())
    np.testing.assert_allclose(with_ghosts.residual, without.residual)

    # ghost cells passed explicitly are skipped as well
    explicit = GlobalAssembler(
        initialized(Mesh(points=mesh.points, cells=mesh.cells, cell_ghost=ghost))
    ).assemble(cells=range(mesh.number_of_cells))
    np.testing.assert_allclose(explicit.residual, without.residual)


def test_residual_at_zero_displacement_is_minus_load(unit_square):
    """
    With every node unknown and u = 0 the residual is −f: each node collects one
    third of the load of every triangle it belongs to.
    """
    model = initialized(unit_square, conditions=[Unknown()] * 4)
    system = GlobalAssembler(model).assemble()

    # cells [0, 1, 3] and [0, 3, 2]: nodes 0 and 3 belong to both, area 1/2 each
    share = np.array([2, 1, 1, 2]) * 0.5 / 3.0
    expected = -np.column_stack((share * 1.0e5, share * -2.0e5)).ravel()
    np.testing.assert_allclose(system.residual, expected, rtol=1e-12)


def test_boundary_elimination_equals_schur_complement(unit_square):
    """
    WHAT IS THIS TEST?
    ==================
    Eliminating the fixed nodes during assembly must give the same solution as
    assembling the full system and partitioning it afterwards:

        K_uu · u_u = f_u − K_uf · u_f

    Nodes 0 and 1 of the 2-triangle square are fixed to non-zero values.
    """
    fixed_values = {0: (0.01, -0.02), 1: (0.03, 0.0)}
    conditions = [Dirichlet(*fixed_values[n]) if n in fixed_values else Unknown() for n in range(4)]

    # Full system: every node unknown, u = 0, so the residual is −f
    full = GlobalAssembler(initialized(square_mesh(1), conditions=[Unknown()] * 4)).assemble()
    K = full.jacobian.toarray()
    f = -full.residual

    fixed_dofs = [0, 1, 2, 3]
    free_dofs = [4, 5, 6, 7]
    u_fixed = np.array([0.01, -0.02, 0.03, 0.0])
    K_uu = K[np.ix_(free_dofs, free_dofs)]
    K_uf = K[np.ix_(free_dofs, fixed_dofs)]
    expected = np.linalg.solve(K_uu, f[free_dofs] - K_uf @ u_fixed)

    # Condensed system assembled directly
    model = initialized(unit_square, conditions=conditions)
    solver = Solver(model, SolverSettings(method="direct"))
    system = solver.assemble()

    np.testing.assert_allclose(system.jacobian.toarray(), K_uu, rtol=1e-12, atol=1e-6)
    np.testing.assert_allclose(system.residual, K_uf @ u_fixed - f[free_dofs], rtol=1e-10, atol=1e-6)

    solver.solve()
    np.testing.assert_allclose(model.displacement[2:].ravel(), expected, rtol=1e-10, atol=1e-14)
    # prescribed values are untouched
    np.testing.assert_allclose(model.displacement[:2].ravel(), u_fixed)


def test_residual_vanishes_at_solution(grid4):
    model = initialized(grid4, reference=constant(0.001, 0.002))
    solver = Solver(model, SolverSettings(method="direct"))
    solver.solve()

    residual = GlobalAssembler(model).assemble().residual
    scale = np.abs(GlobalAssembler(model).assemble().jacobian).max()
    assert np.abs(residual).max() < 1e-8 * scale


def test_stale_system_is_rejected(grid4):
    """Changing a node condition rebuilds the index map and invalidates old systems."""
    model = initialized(grid4)
    solver = Solver(model)
    solver.assemble()
    old_generation = model.generation

    model.set_condition(6, Dirichlet(0.0, 0.0))

    assert model.generation == old_generation + 1
    assert model.number_of_equations == 16
    with pytest.raises(AssemblyError):
        solver.solve()

    solver.assemble()
    report = solver.solve()
    assert report.number_of_equations == 16


def test_merge_rejects_foreign_builder(grid4, unit_square):
    a = GlobalAssembler(initialized(grid4)).new_builder()
    b = GlobalAssembler(initialized(unit_square, conditions=[Unknown()] * 4)).new_builder()
    with pytest.raises(AssemblyError):
        a.merge(b)


def test_assembly_requires_initialized_model(grid4):
    with pytest.raises(AssemblyError):
        GlobalAssembler(Model(grid4)).assemble()
