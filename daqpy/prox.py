"""Proximal-point outer iterations for QPs and LPs with a semidefinite Hessian."""

from __future__ import annotations

from .constants import DAQP_INF, EMPTY_IND, ExitFlag, Sense
from .model import Workspace
from .solver import daqp_ldp, ldp2qp_solution
from .transform import update_d, update_v


def _is_lp(work: Workspace) -> bool:
    return work.Rinv is None and work.RinvD is None


def _gradient_step(work: Workspace) -> int:
    """Extend the step ``x - xold`` until the first inactive constraint is hit.

    Returns the index of the blocking constraint, or EMPTY_IND if none blocks.
    """
    n = work.n
    qp = work.qp
    blocked = Sense.ACTIVE | Sense.IMMUTABLE
    add_ind = EMPTY_IND
    min_alpha = DAQP_INF

    for j in range(work.ms):
        if work.sense[j] & blocked:
            continue
        delta_s = work.x[j] - work.xold[j]
        if (
            delta_s > 0
            and qp.bupper[j] < DAQP_INF
            and qp.bupper[j] - work.x[j] < min_alpha * delta_s
        ):
            add_ind = j
            min_alpha = (qp.bupper[j] - work.x[j]) / delta_s
        elif (
            delta_s < 0
            and qp.blower[j] > -DAQP_INF
            and qp.blower[j] - work.x[j] > min_alpha * delta_s
        ):
            add_ind = j
            min_alpha = (qp.blower[j] - work.x[j]) / delta_s

    for j in range(work.ms, work.m):
        if work.sense[j] & blocked:
            continue
        offset = n * (j - work.ms)
        row = work.M[offset:offset + n]
        ax = sum(a * x for a, x in zip(row, work.x))
        delta_s = ax - sum(a * x for a, x in zip(row, work.xold))
        if work.scaling is not None:
            ax /= work.scaling[j]
            delta_s /= work.scaling[j]
        if (
            delta_s > 0
            and qp.bupper[j] < DAQP_INF
            and qp.bupper[j] - ax < delta_s * min_alpha
        ):
            add_ind = j
            min_alpha = (qp.bupper[j] - ax) / delta_s
        elif (
            delta_s < 0
            and qp.blower[j] > -DAQP_INF
            and qp.blower[j] - ax > delta_s * min_alpha
        ):
            add_ind = j
            min_alpha = (qp.blower[j] - ax) / delta_s

    if add_ind != EMPTY_IND:
        work.x[:n] = [
            x + min_alpha * (x - xo) for x, xo in zip(work.x[:n], work.xold[:n])
        ]
    return add_ind


def daqp_prox(work: Workspace) -> int:
    """Solve the problem in ``work`` by a sequence of regularized subproblems.

    The primal solution ends up in ``work.x``; the total number of inner
    iterations is stored in ``work.iterations``.
    """
    settings = work.settings
    n = work.n
    eps = settings.eps_prox
    eta = settings.eta_prox
    total_iter = 0
    cycle_counter = 0
    best_fval = DAQP_INF
    exitflag: int = ExitFlag.ITERLIMIT
    work.x[:n] = [0.0] * n

    while total_iter < settings.iter_limit:
        work.xold, work.x = work.x, work.xold
        work.u = work.x

        exitflag = daqp_ldp(work)
        total_iter += work.iterations
        if exitflag < 0:
            return exitflag
        ldp2qp_solution(work)

        if eps == 0:
            break

        lp = _is_lp(work)
        if work.iterations == 1:
            # Working set unchanged: check for a fixed point.
            tol_stat = eta * eps if lp else eta / eps
            if all(
                -tol_stat <= x - xo <= tol_stat
                for x, xo in zip(work.x[:n], work.xold[:n])
            ):
                exitflag = ExitFlag.OPTIMAL
                break
            if lp and work.n_active != n:
                if _gradient_step(work) == EMPTY_IND:
                    exitflag = ExitFlag.UNBOUNDED
                    break

        if lp:
            diff = best_fval - sum(f * x for f, x in zip(work.qp.f, work.x[:n]))
            if diff < 1e-10:
                stalled = cycle_counter > 10
                cycle_counter += 1
                if stalled:
                    return ExitFlag.OPTIMAL
            else:
                best_fval -= diff
                cycle_counter = 0

        if lp:
            eps *= 10 if work.iterations == 1 else 0.9
            eps = min(eps, 1e3)
            work.v[:n] = [f * eps - x for f, x in zip(work.qp.f, work.x[:n])]
        else:
            work.v[:n] = [f - eps * x for f, x in zip(work.qp.f, work.x[:n])]
            update_v(work.v, work, 0)
        update_d(work)

    if total_iter >= settings.iter_limit:
        exitflag = ExitFlag.ITERLIMIT
    if _is_lp(work):
        for i in range(work.n_active):
            work.lam_star[i] /= eps
    work.iterations = total_iter
    return exitflag