import numpy as np
import pytest

from elasticityfem.config import FIELD_STRESS
from elasticityfem.fea.analysis.model import Model
from elasticityfem.fea.errors import AssemblyError, ConvergenceError
from elasticityfem.fea.pre.conditions import Unknown, constant, uniform_load, zero_displacement
from elasticityfem.fea.pre.material import ElasticMaterial
from elasticityfem.fea.pre.mesh import Mesh
from elasticityfem.fea.post.stress import cell_stresses
from elasticityfem.fea.solvers.linear import LinearSolver, SolverSettings
from elasticityfem.fea.solvers.solver import Solver, apply_correction

from conftest import square_mesh

ZERO_LOAD = constant(0.0, 0.0)


def test_constant_boundary_displacement_is_reproduced(grid4):
    """
    WHAT IS THIS TEST?
    ==================
    A rigid translation produces no strain. With the whole boundary fixed to the
    same displacement and no load, every interior node must move by exactly that
    displacement.
    """
    shift = constant(0.3, -0.2)
    model = Model(grid4)
    model.initialize(load=ZERO_LOAD, reference=shift)

    report = Solver(model).solve()

    np.testing.assert_allclose(model.displacement, np.tile([0.3, -0.2], (25, 1)), rtol=1e-9)
    assert report.error_c_norm < 1e-9
    assert report.number_of_equations == 18


def test_linear_patch_test():
    """
    Constant strain triangles represent any linear displacement field exactly; with
    linear boundary data and no load the discrete solution is that field.
    """
    a, b, c, d = 1e-3, -2e-3, 5e-4, 3e-3

    def linear(x):
        return a * x[0] + b * x[1], c * x[0] + d * x[1]

    mesh = square_mesh(5)
    model = Model(mesh)
    model.initialize(load=ZERO_LOAD, reference=linear)

    report = Solver(model, SolverSettings(method="direct")).solve()

    exact = np.array([linear(x) for x in mesh.points])
    np.testing.assert_allclose(model.displacement, exact, rtol=1e-9, atol=1e-15)
    assert report.error_c_norm < 1e-12

    # constant stress, also after nodal averaging
    expected_stress = model.material.elastic_tensor @ np.array([a, d, b + c])
    np.testing.assert_allclose(cell_stresses(model), np.tile(expected_stress, (50, 1)), rtol=1e-8)
    np.testing.assert_allclose(mesh.field(FIELD_STRESS), np.tile(expected_stress, (36, 1)), rtol=1e-8)


def test_unit_square_benchmark(unit_square):
    """
    WHAT IS THIS TEST?
    ==================
    Two triangles on the unit square, E = 3.5e6, ν = 0.3, load (-3e7, 0), every node
    on the boundary fixed at (0, 0). No equation is left; the run must still
    succeed and report a finite, non-negative error.
    """
    model = Model(unit_square, ElasticMaterial(young_modulus=3.5e6, poisson_ratio=0.3))
    model.initialize(load=uniform_load, reference=zero_displacement)

    report = Solver(model).solve()

    assert model.number_of_dirichlet_nodes == 4
    assert report.number_of_equations == 0
    assert np.isfinite(report.error_c_norm)
    assert report.error_c_norm == 0.0
    assert report.residual_norm == 0.0
    np.testing.assert_array_equal(model.displacement, 0.0)


def test_loaded_square_benchmark(grid4):
    """Same problem on a 4 x 4 grid: the interior is pushed in -x on average."""
    model = Model(grid4)
    model.initialize(load=uniform_load, reference=zero_displacement)

    report = Solver(model).solve()

    interior = ~grid4.boundary_nodes
    # f·u = uᵀKu > 0 and every interior node carries the same share of the load
    assert model.displacement[interior, 0].sum() < 0.0
    assert np.isfinite(report.error_c_norm)
    assert report.error_c_norm == pytest.approx(np.abs(model.displacement[interior]).max())
    assert report.residual_norm >= 0.0
    assert report.iterations > 0


def test_iterative_and_direct_solutions_agree():
    mesh_a, mesh_b = square_mesh(6), square_mesh(6)

    solutions = []
    for mesh, method in ((mesh_a, "cg"), (mesh_b, "direct")):
        model = Model(mesh)
        model.initialize(load=uniform_load, reference=zero_displacement)
        Solver(model, SolverSettings(method=method)).solve()
        solutions.append(model.displacement.copy())

    np.testing.assert_allclose(solutions[0], solutions[1], rtol=1e-8, atol=1e-14)


def test_bicgstab_solves_the_system(grid4):
    model = Model(grid4)
    model.initialize(load=uniform_load)
    report = Solver(model, SolverSettings(method="bicgstab")).solve()
    assert report.error_c_norm > 0.0


def test_correction_is_subtracted(unit_square):
    """
    The residual formulation yields a correction: u_new = u_old − δu. The error is
    the largest component-wise deviation from the reference.
    """
    model = Model(unit_square)
    model.initialize(conditions=[Unknown()] * 4, reference=constant(1.0, 0.0))
    model.displacement[:] = 2.0

    correction = np.array([0.5, 1.0, 0.0, 0.0, 1.0, 2.0, -1.0, 0.0])
    error = apply_correction(model, correction)

    expected = 2.0 - correction.reshape(4, 2)
    np.testing.assert_allclose(model.displacement, expected)
    assert error == pytest.approx(np.max(np.abs(expected - [1.0, 0.0])))


def test_fixed_nodes_are_excluded_from_error(grid4):
    model = Model(grid4)
    model.initialize(load=ZERO_LOAD, reference=zero_displacement)

    # a wrong prescribed value on the boundary does not enter the error
    model.displacement[0] = [10.0, 10.0]
    error = apply_correction(model, np.zeros(model.number_of_equations))
    assert error == 0.0


def test_correction_size_is_checked(grid4):
    model = Model(grid4)
    model.initialize()
    with pytest.raises(AssemblyError):
        apply_correction(model, np.zeros(3))


def test_solver_failure_can_be_retried():
    """
    WHAT IS THIS TEST?
    ==================
    A non-converging solve aborts with ConvergenceError carrying the iteration count
    and residual; the same solver then succeeds with different settings.
    """
    model = Model(square_mesh(6))
    model.initialize(load=uniform_load)
    solver = Solver(
        model,
        SolverSettings(method="cg", max_iterations=1, preconditioner=False),
    )

    with pytest.raises(ConvergenceError) as excinfo:
        solver.solve()

    result = excinfo.value.result
    assert not result.converged
    assert result.iterations == 1
    assert result.residual_norm > 0.0
    # nothing was applied
    np.testing.assert_array_equal(model.displacement, 0.0)

    solver.linear_solver.settings = SolverSettings(method="direct")
    report = solver.solve()
    assert report.error_c_norm > 0.0


def test_unknown_solver_method():
    with pytest.raises(ValueError):
        SolverSettings(method="magic")


def test_linear_solver_shape_mismatch():
    import scipy as sp

    with pytest.raises(ValueError):
        LinearSolver().solve(sp.sparse.identity(3, format="csr"), np.zeros(2))


def test_save_solution(tmp_path, grid4):
    model = Model(grid4)
    model.initialize()
    solver = Solver(model)
    solver.solve()

    result = tmp_path / "res.vtk"
    deformed = tmp_path / "deformed.vtk"
    solver.save_solution(str(result), deformed_filename=str(deformed))

    loaded = Mesh.from_file(str(result))
    np.testing.assert_allclose(loaded.field("Displacement"), model.displacement)
    np.testing.assert_allclose(loaded.field("Stress"), grid4.field("Stress"))

    moved = Mesh.from_file(str(deformed))
    np.testing.assert_allclose(moved.points, grid4.points + model.displacement)


@pytest.mark.parametrize("settings", [SolverSettings(), SolverSettings(method="cg")], ids=["default", "cg"])
def test_iterative_solver_converges_on_a_fine_mesh(settings):
    """
    WHAT IS THIS TEST?
    ==================
    The default solver and preconditioned CG must converge on a 40 x 40 grid
    (3200 triangles, 3042 equations) and agree with a direct factorisation.
    """
    solutions = []
    for current in (settings, SolverSettings(method="direct")):
        model = Model(square_mesh(40))
        model.initialize(load=uniform_load, reference=zero_displacement)
        Solver(model, current).solve()
        solutions.append(model.displacement.copy())

    iterative, direct = solutions
    scale = np.abs(direct).max()
    assert scale > 0.0
    np.testing.assert_allclose(iterative, direct, rtol=0.0, atol=1e-6 * scale)


def test_cg_rejects_matrix_with_non_positive_diagonal():
    import scipy as sp

    result = LinearSolver(SolverSettings(method="cg")).solve(
        -sp.sparse.identity(4, format="csr"), np.ones(4)
    )
    assert not result.converged
    assert "positive definite" in result.reason
