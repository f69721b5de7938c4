import math

import pytest

from daqpy.constants import (
    DAQP_INF,
    UPDATE_D,
    UPDATE_M,
    UPDATE_RINV,
    UPDATE_SENSE,
    UPDATE_V,
    ExitFlag,
    Sense,
    arsum,
    r_offset,
)
from daqpy.model import Problem, Settings, SetupError, Workspace
from daqpy.solver import daqp_ldp
from daqpy.transform import (
    minrep_work,
    normalize_m,
    normalize_rinv,
    update_d,
    update_ldp,
    update_m,
    update_rinv,
    update_v,
)


def _bare(problem, settings=None):
    work = Workspace(problem.n, problem.m, problem.ms, settings=settings)
    work.qp = problem
    work.scaling = [1.0] * problem.m
    work.M = [0.0] * (problem.n * (problem.m - problem.ms))
    if problem.H is not None:
        work.Rinv = [0.0] * arsum(problem.n)
    if problem.f is not None:
        work.v = [0.0] * problem.n
    return work


def _setup(problem, settings=None):
    work = _bare(problem, settings)
    mask = UPDATE_M | UPDATE_D | UPDATE_SENSE
    if problem.H is not None:
        mask |= UPDATE_RINV
    if problem.f is not None:
        mask |= UPDATE_V
    update_ldp(mask, work)
    return work


def _dense(packed, n):
    return [
        [packed[r_offset(i, n) + j] if j >= i else 0.0 for j in range(n)]
        for i in range(n)
    ]


def test_rinv_whitens_dense_hessian():
    H = [4.0, 1.0, 0.5, 1.0, 3.0, 0.2, 0.5, 0.2, 2.0]
    work = _bare(Problem(n=3, m=0, H=H))
    update_rinv(work)
    assert work.RinvD is None
    X = _dense(work.Rinv, 3)
    for a in range(3):
        for b in range(3):
            value = sum(
                X[i][a] * H[i * 3 + j] * X[j][b] for i in range(3) for j in range(3)
            )
            assert value == pytest.approx(1.0 if a == b else 0.0, abs=1e-12)


def test_diagonal_hessian_kept_as_vector():
    H = [4.0, 0.0, 0.0, 9.0]
    work = _bare(Problem(n=2, m=1, ms=1, H=H, bupper=[1], blower=[-1]))
    update_rinv(work)
    assert work.Rinv is None
    for i in range(2):
        assert work.RinvD[i] ** 2 * H[i * 2 + i] == pytest.approx(1.0)
    assert work.scaling[0] * work.RinvD[0] == pytest.approx(1.0)


def test_prox_regularization_added_to_diagonal():
    work = _bare(Problem(n=2, m=0, H=[1, 0, 0, 1]), Settings(eps_prox=3.0))
    update_rinv(work)
    assert work.RinvD[:2] == pytest.approx([0.5, 0.5])


@pytest.mark.parametrize("H", [[1, 2, 2, 1], [1, 0, 0, -1]])
def test_indefinite_hessian_rejected(H):
    work = _bare(Problem(n=2, m=0, H=H))
    with pytest.raises(SetupError) as info:
        update_rinv(work)
    assert info.value.exitflag == ExitFlag.NONCONVEX


def test_update_m_copies_a_without_hessian():
    A = [1.0, -2.0, 3.0, 0.5]
    work = _bare(Problem(n=2, m=2, A=A, bupper=[1, 1], blower=[0, 0]))
    work.n_active = 1
    update_m(work, 0)
    assert work.M == A
    assert work.n_active == 0


def test_update_m_undoes_simple_bound_scaling():
    problem = Problem(n=2, m=2, ms=1, A=[4.0, 3.0], bupper=[1, 1], blower=[0, 0])
    work = _bare(problem)
    work.Rinv = [1.0, 0.0, 1.0]
    work.scaling = [2.0, 1.0]
    update_m(work, UPDATE_RINV)
    assert work.M == [4.0, 3.0]
    update_m(work, 0)
    assert work.M == [2.0, 3.0]


def test_normalize_m_gives_unit_rows_and_ignores_zero_rows():
    A = [3.0, 4.0, 0.0, 0.0, 1.0, 1.0]
    work = _bare(Problem(n=2, m=3, A=A, bupper=[1] * 3, blower=[0] * 3))
    update_m(work, 0)
    normalize_m(work)
    for k in (0, 2):
        row = work.M[2 * k:2 * k + 2]
        assert math.hypot(*row) == pytest.approx(1.0)
        assert work.scaling[k] * math.hypot(*A[2 * k:2 * k + 2]) == pytest.approx(1.0)
    assert work.sense[1] == Sense.IMMUTABLE


def test_normalize_rinv_gives_unit_simple_rows():
    problem = Problem(n=2, m=2, ms=2, H=[4, 1, 1, 2], bupper=[1, 1], blower=[0, 0])
    work = _bare(problem)
    update_rinv(work)
    normalize_rinv(work)
    X = _dense(work.Rinv, 2)
    for i in range(2):
        assert math.sqrt(sum(v * v for v in X[i])) == pytest.approx(1.0)


def test_update_v_without_hessian_copies_f():
    work = _bare(Problem(n=2, m=0, f=[1.5, -2.5]))
    update_v(work.qp.f, work, 0)
    assert work.v == [1.5, -2.5]


def test_update_v_solves_against_hessian():
    H = [4.0, 1.0, 1.0, 2.0]
    f = [1.0, -3.0]
    work = _bare(Problem(n=2, m=0, H=H, f=f))
    update_rinv(work)
    update_v(f, work, UPDATE_RINV)
    X = _dense(work.Rinv, 2)
    y = [sum(X[i][j] * work.v[j] for j in range(2)) for i in range(2)]
    Hy = [sum(H[i * 2 + j] * y[j] for j in range(2)) for i in range(2)]
    assert Hy == pytest.approx(f)


def test_update_d_shifts_bounds_by_m_times_v():
    problem = Problem(n=2, m=2, f=[3.0, 4.0], A=[1, 0, 0, 1], bupper=[1, 1], blower=[-1, -1])
    work = _bare(problem)
    work.scaling = None
    update_m(work, 0)
    update_v(problem.f, work, 0)
    work.reuse_ind = 2
    update_d(work)
    assert work.reuse_ind == 0
    for i in range(2):
        assert work.dupper[i] - problem.bupper[i] == pytest.approx(work.v[i])
        assert work.dlower[i] - problem.blower[i] == pytest.approx(work.v[i])


def test_update_d_without_v_copies_bounds():
    problem = Problem(n=1, m=2, A=[1, 2], bupper=[5, 6], blower=[-5, -6])
    work = _bare(problem)
    work.scaling = None
    update_d(work)
    assert work.dupper == [5.0, 6.0]
    assert work.dlower == [-5.0, -6.0]


def test_crossed_bounds_rejected():
    problem = Problem(n=1, m=1, A=[1], bupper=[0], blower=[1])
    with pytest.raises(SetupError) as info:
        _setup(problem)
    assert info.value.exitflag == ExitFlag.INFEASIBLE


def test_equal_bounds_become_active_equality():
    problem = Problem(n=2, m=1, A=[1, 1], bupper=[1], blower=[1])
    work = _setup(problem)
    assert work.sense[0] & (Sense.ACTIVE | Sense.IMMUTABLE) == Sense.ACTIVE | Sense.IMMUTABLE
    assert work.n_active == 1
    assert daqp_ldp(work) == ExitFlag.OPTIMAL
    assert work.u[0] + work.u[1] == pytest.approx(work.dupper[0] * math.sqrt(2))


def test_dependent_equalities_rejected():
    problem = Problem(n=2, m=2, A=[1, 0, 1, 0], bupper=[1, 1], blower=[1, 1])
    with pytest.raises(SetupError) as info:
        _setup(problem)
    assert info.value.exitflag == ExitFlag.OVERDETERMINED_INITIAL


def test_setup_normalizes_general_rows():
    problem = Problem(
        n=2, m=2, H=[4, 1, 1, 2], f=[1, 1], A=[1, 2, -3, 1], bupper=[1, 1], blower=[-1, -1]
    )
    work = _setup(problem)
    for k in range(2):
        assert math.hypot(*work.M[2 * k:2 * k + 2]) == pytest.approx(1.0)


def test_minrep_detects_redundant_halfspace():
    work = Workspace(2, 5)
    work.M = [1.0, 0.0, 0.0, 1.0, -1.0, 0.0, 0.0, -1.0, 1.0, 1.0]
    work.dupper = [1.0, 1.0, 0.0, 0.0, 5.0]
    work.dlower = [-DAQP_INF] * 5
    result = minrep_work(work)
    assert result == [False, False, False, False, True]