"""Working-set operations of the dual active-set method."""

from __future__ import annotations

from .constants import EMPTY_IND, ExitFlag, Sense, arsum, r_offset
from .factorization import update_ldl_add, update_ldl_remove
from .model import Workspace


def _slack_free(work: Workspace, index: int) -> bool:
    return not work.sense[index] & Sense.SLACK_FIXED


def _constraint_product(work: Workspace, index: int, vector: list[float]) -> float:
    """Return row ``index`` of the transformed constraint matrix times ``vector``."""
    n = work.n
    if work.is_simple(index):
        if work.Rinv is None:
            return vector[index]
        offset = r_offset(index, n)
        return sum(work.Rinv[offset + k] * vector[k] for k in range(index, n))
    offset = n * (index - work.ms)
    return sum(work.M[offset + k] * vector[k] for k in range(n))


def remove_constraint(work: Workspace, rm_ind: int) -> None:
    """Remove the constraint at working-set position ``rm_ind``."""
    work.sense[work.WS[rm_ind]] &= ~Sense.ACTIVE
    update_ldl_remove(work, rm_ind)
    work.n_active -= 1
    n_active = work.n_active

    work.WS[rm_ind:n_active] = work.WS[rm_ind + 1:n_active + 1]
    work.lam[rm_ind:n_active] = work.lam[rm_ind + 1:n_active + 1]

    if rm_ind < work.reuse_ind:
        work.reuse_ind = rm_ind

    # Removal may leave a numerically singular factor.
    if n_active > 0 and work.D[n_active - 1] < work.settings.zero_tol:
        work.sing_ind = n_active - 1
        work.D[n_active - 1] = 0.0
    else:
        pivot_last(work)


def add_constraint(work: Workspace, add_ind: int, lam: float) -> None:
    """Append constraint ``add_ind`` to the working set with multiplier ``lam``."""
    work.sense[add_ind] |= Sense.ACTIVE
    update_ldl_add(work, add_ind)
    work.WS[work.n_active] = add_ind
    work.lam[work.n_active] = lam
    work.n_active += 1
    pivot_last(work)


def compute_primal_and_fval(work: Workspace) -> None:
    """Compute ``u = -Mk' lam_star`` together with the dual objective value."""
    n = work.n
    u = [0.0] * n
    soft = 0.0
    for index, lam in zip(work.WS[:work.n_active], work.lam_star):
        if work.is_simple(index):
            if work.Rinv is not None:
                offset = r_offset(index, n)
                for j in range(index, n):
                    u[j] -= work.Rinv[offset + j] * lam
            else:
                u[index] -= lam
        else:
            offset = n * (index - work.ms)
            for j in range(n):
                u[j] -= work.M[offset + j] * lam
        if work.is_soft(index):
            scale = 1.0 if work.scaling is None else work.scaling[index]
            soft += (lam * scale) ** 2
    work.u[:] = u
    soft *= work.settings.rho_soft
    work.soft_slack = soft
    work.fval = soft + sum(value * value for value in u)


def add_infeasible(work: Workspace) -> bool:
    """Add the most violated inactive constraint to the working set.

    Returns False when every constraint is satisfied.
    """
    ep = -work.settings.primal_tol
    min_val = ep
    add_ind = EMPTY_IND
    is_upper = False
    blocked = Sense.ACTIVE | Sense.IMMUTABLE

    def acceptable(candidate: float, index: int) -> bool:
        return candidate < min_val and (
            work.scaling is None or candidate < ep * work.scaling[index]
        )

    for index in range(work.m):
        if work.sense[index] & blocked:
            continue
        mu = _constraint_product(work, index, work.u)
        candidate = work.dupper[index] - mu
        if acceptable(candidate, index):
            add_ind, is_upper, min_val = index, True, candidate
        else:
            candidate = mu - work.dlower[index]
            if acceptable(candidate, index):
                add_ind, is_upper, min_val = index, False, candidate

    if add_ind == EMPTY_IND:
        return False

    if is_upper:
        work.sense[add_ind] &= ~Sense.LOWER
    else:
        work.sense[add_ind] |= Sense.LOWER
    work.lam, work.lam_star = work.lam_star, work.lam
    add_constraint(work, add_ind, 1.0 if is_upper else -1.0)
    return True


def remove_blocking(work: Workspace) -> bool:
    """Step towards ``lam_star`` and drop the first blocking constraint.

    Returns False when no constraint blocks the step.
    """
    dual_tol = work.settings.dual_tol
    singular = work.sing_ind != EMPTY_IND
    n_active = work.n_active
    alpha = float("inf")
    rm_ind = EMPTY_IND

    for i in range(n_active):
        index = work.WS[i]
        if work.is_immutable(index):
            continue
        lam_star = work.lam_star[i]
        if work.is_lower(index):
            if lam_star < dual_tol:
                continue
        elif lam_star > -dual_tol:
            continue
        step = lam_star if singular else lam_star - work.lam[i]
        candidate = -work.lam[i] / step
        if candidate < alpha:
            alpha = candidate
            rm_ind = i

    if rm_ind == EMPTY_IND:
        return False

    for i in range(n_active):
        step = work.lam_star[i] if singular else work.lam_star[i] - work.lam[i]
        work.lam[i] += alpha * step

    work.sing_ind = EMPTY_IND
    remove_constraint(work, rm_ind)
    return True


def compute_csp(work: Workspace) -> None:
    """Solve ``Mk Mk' lam_star = -dk`` using the LDL' factors."""
    L = work.L
    n_active = work.n_active
    start = work.reuse_ind

    for i in range(start, n_active):
        index = work.WS[i]
        value = -work.dlower[index] if work.is_lower(index) else -work.dupper[index]
        base = arsum(i)
        for j in range(i):
            value -= L[base + j] * work.xldl[j]
        work.xldl[i] = value

    for i in range(start, n_active):
        work.zldl[i] = work.xldl[i] / work.D[i]

    for i in reversed(range(n_active)):
        value = work.zldl[i]
        for j in range(n_active - 1, i, -1):
            value -= work.lam_star[j] * L[arsum(j) + i]
        work.lam_star[i] = value

    work.reuse_ind = n_active


def compute_singular_direction(work: Workspace) -> None:
    """Store in ``lam_star`` a descent direction in the null space of ``Mk'``."""
    L = work.L
    sing = work.sing_ind
    offset = arsum(sing)

    for i in reversed(range(sing)):
        value = -L[offset + i]
        for j in range(sing - 1, i, -1):
            value -= work.lam_star[j] * L[arsum(j) + i]
        work.lam_star[i] = value
    work.lam_star[sing] = 1.0

    if work.is_lower(work.WS[sing]):
        work.lam_star[:sing + 1] = [-value for value in work.lam_star[:sing + 1]]


def pivot_last(work: Workspace) -> None:
    """Swap the last two constraints when the second to last pivot is small."""
    n_active = work.n_active
    rm_ind = n_active - 2
    if n_active <= 1:
        return
    D = work.D
    if not (D[rm_ind] < work.settings.pivot_tol and D[rm_ind] < D[n_active - 1]):
        return
    ind_old = work.WS[rm_ind]
    # The order of binary constraints is relied upon elsewhere.
    if work.is_binary(ind_old) and work.is_binary(work.WS[n_active - 1]):
        return
    if work.bnb is not None and rm_ind < work.bnb.n_clean:
        return

    lam_old = work.lam[rm_ind]
    remove_constraint(work, rm_ind)
    if work.sing_ind != EMPTY_IND:
        return
    add_constraint(work, ind_old, lam_old)


def activate_constraints(work: Workspace) -> int:
    """Add every constraint marked active in ``sense`` to the working set.

    Returns ``ExitFlag.OVERDETERMINED_INITIAL`` if the set is linearly
    dependent, otherwise 1.
    """
    for i in range(work.m):
        if work.is_active(i):
            add_constraint(work, i, -1.0 if work.is_lower(i) else 1.0)
        if work.sing_ind != EMPTY_IND:
            for j in range(i, work.m):
                work.sense[j] &= ~Sense.ACTIVE
            return ExitFlag.OVERDETERMINED_INITIAL
    return 1


def deactivate_constraints(work: Workspace) -> None:
    """Clear the active bit of every mutable constraint in the working set."""
    for index in work.WS[:work.n_active]:
        if not work.is_immutable(index):
            work.sense[index] &= ~Sense.ACTIVE