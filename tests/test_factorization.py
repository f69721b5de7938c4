import pytest

from daqpy.constants import EMPTY_IND, Sense, arsum, r_offset
from daqpy.factorization import update_ldl_add, update_ldl_remove
from daqpy.model import Workspace


def general_workspace(rows, n, ms=0):
    work = Workspace(n, m=ms + len(rows), ms=ms)
    work.M = [float(v) for row in rows for v in row]
    return work


def add(work, index):
    update_ldl_add(work, index)
    work.WS[work.n_active] = index
    work.n_active += 1


def remove(work, position):
    update_ldl_remove(work, position)
    work.WS[position:work.n_active - 1] = work.WS[position + 1:work.n_active]
    work.n_active -= 1


def full_row(work, index):
    n = work.n
    if work.is_simple(index):
        if work.Rinv is None:
            return [1.0 if j == index else 0.0 for j in range(n)]
        off = r_offset(index, n)
        return [0.0] * index + work.Rinv[off + index:off + n]
    start = n * (index - work.ms)
    return work.M[start:start + n]


def gram(work):
    rows = [full_row(work, i) for i in work.WS[:work.n_active]]
    return [[sum(a * b for a, b in zip(r, s)) for s in rows] for r in rows]


def ldl_product(work):
    k = work.n_active

    def l(a, j):
        return 1.0 if a == j else work.L[arsum(a) + j]

    return [
        [sum(l(a, j) * work.D[j] * l(b, j) for j in range(min(a, b) + 1)) for b in range(k)]
        for a in range(k)
    ]


def assert_matches_gram(work):
    expected = gram(work)
    actual = ldl_product(work)
    for row_a, row_b in zip(actual, expected):
        assert row_a == pytest.approx(row_b, abs=1e-12)


def test_single_constraint_diagonal_is_squared_norm():
    work = general_workspace([[3.0, 4.0]], 2)
    add(work, 0)
    assert work.sing_ind == EMPTY_IND
    assert work.D[0] == pytest.approx(gram(work)[0][0])


def test_independent_rows_factorize_gram():
    rows = [[2.0, 1.0, 0.0], [1.0, 3.0, 1.0], [0.5, -1.0, 2.0]]
    work = general_workspace(rows, 3)
    for i in range(3):
        add(work, i)
        assert work.sing_ind == EMPTY_IND
    assert all(d > 0 for d in work.D[:3])
    assert_matches_gram(work)


def test_dependent_row_is_singular():
    work = general_workspace([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]], 3)
    add(work, 0)
    add(work, 1)
    update_ldl_add(work, 2)
    assert work.sing_ind == 2
    assert work.D[2] == 0.0


def test_more_constraints_than_variables_is_singular():
    work = general_workspace([[1.0, 0.0], [0.0, 1.0], [1.0, 2.0]], 2)
    add(work, 0)
    add(work, 1)
    update_ldl_add(work, 2)
    assert work.sing_ind == 2


def test_remove_middle_constraint():
    rows = [[2.0, 1.0, 0.0], [1.0, 3.0, 1.0], [0.5, -1.0, 2.0]]
    work = general_workspace(rows, 3)
    for i in range(3):
        add(work, i)
    remove(work, 1)
    assert work.WS[:2] == [0, 2]
    assert_matches_gram(work)


def test_remove_first_of_four():
    rows = [
        [1.0, 2.0, 0.0, 1.0],
        [0.0, 1.0, 1.0, 0.0],
        [2.0, 0.0, 1.0, -1.0],
        [1.0, 1.0, 1.0, 3.0],
    ]
    work = general_workspace(rows, 4)
    for i in range(4):
        add(work, i)
    remove(work, 0)
    assert_matches_gram(work)
    remove(work, 1)
    assert_matches_gram(work)


def test_remove_last_keeps_prefix():
    rows = [[2.0, 1.0], [1.0, 3.0]]
    work = general_workspace(rows, 2)
    add(work, 0)
    add(work, 1)
    before = (work.D[0], work.L[:arsum(1)])
    remove(work, 1)
    assert (work.D[0], work.L[:arsum(1)]) == before
    assert_matches_gram(work)


def test_identity_simple_bounds_with_general_row():
    work = general_workspace([[1.0, 2.0]], 2, ms=2)
    add(work, 0)
    add(work, 2)
    assert work.sing_ind == EMPTY_IND
    assert_matches_gram(work)
    update_ldl_add(work, 1)
    assert work.sing_ind == 2


def test_simple_bounds_with_packed_rinv():
    work = general_workspace([[1.0, -1.0, 0.5]], 3, ms=3)
    work.Rinv = [2.0, 0.5, 1.0, 1.5, -0.5, 0.8]
    add(work, 1)
    add(work, 3)
    add(work, 0)
    assert work.sing_ind == EMPTY_IND
    assert_matches_gram(work)
    remove(work, 0)
    assert_matches_gram(work)


def test_soft_constraints_avoid_singularity():
    work = general_workspace([[1.0], [1.0]], 1)
    work.sense[0] = Sense.SOFT
    work.sense[1] = Sense.SOFT
    work.scaling = [1.0, 1.0]
    add(work, 0)
    assert work.D[0] == pytest.approx(1.0 + work.settings.rho_soft)
    update_ldl_add(work, 1)
    assert work.sing_ind == EMPTY_IND
    assert work.D[1] > work.settings.zero_tol


def test_hard_duplicate_constraint_is_singular():
    work = general_workspace([[1.0], [1.0]], 1)
    add(work, 0)
    update_ldl_add(work, 1)
    assert work.sing_ind == 1