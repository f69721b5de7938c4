"""Dual active-set iterations for least-distance problems and recovery
of the quadratic-program solution."""

from __future__ import annotations

from collections.abc import Iterable

from .auxiliary import (
    activate_constraints,
    add_constraint,
    add_infeasible,
    compute_csp,
    compute_primal_and_fval,
    compute_singular_direction,
    remove_blocking,
)
from .constants import EMPTY_IND, ExitFlag, Sense, r_offset
from .model import Workspace


def daqp_ldp(work: Workspace) -> ExitFlag:
    """Solve the least-distance problem held in ``work``.

    The number of iterations used is stored in ``work.iterations``.
    """
    settings = work.settings
    exitflag = ExitFlag.ITERLIMIT
    tried_repair = False
    cycle_counter = 0
    best_fval = -1.0
    # The internal objective is twice the nominal one.
    fval_bound = 2 * settings.fval_bound

    iteration = 1
    while iteration < settings.iter_limit:
        if work.sing_ind == EMPTY_IND:
            compute_csp(work)
            if not remove_blocking(work):
                compute_primal_and_fval(work)
                if work.fval > fval_bound:
                    exitflag = ExitFlag.INFEASIBLE
                    break
                if not add_infeasible(work):
                    if work.soft_slack > settings.primal_tol:
                        exitflag = ExitFlag.SOFT_OPTIMAL
                    else:
                        exitflag = ExitFlag.OPTIMAL
                    break

                if work.fval - best_fval < settings.progress_tol:
                    stalled = cycle_counter > settings.cycle_tol
                    cycle_counter += 1
                    if stalled:
                        if tried_repair or work.bnb is not None:
                            exitflag = ExitFlag.CYCLE
                            break
                        # Cycling: rebuild the factorization from scratch.
                        tried_repair = True
                        work.reset()
                        activate_constraints(work)
                        cycle_counter = 0
                        best_fval = -1.0
                else:
                    best_fval = work.fval
                    cycle_counter = 0
        else:
            compute_singular_direction(work)
            if not remove_blocking(work):
                exitflag = ExitFlag.INFEASIBLE
                break
        iteration += 1

    work.iterations = iteration
    return exitflag


def ldp2qp_solution(work: Workspace) -> None:
    """Map the least-distance solution back to ``x = Rinv (u - v)`` and
    rescale the active dual variables."""
    n = work.n
    if work.v is not None:
        x = [u - v for u, v in zip(work.u, work.v)]
    else:
        x = list(work.u[:n])

    if work.Rinv is not None:
        rinv = work.Rinv
        for i in range(n):
            offset = r_offset(i, n)
            value = x[i] * rinv[offset + i]
            for j in range(i + 1, n):
                value += rinv[offset + j] * x[j]
            x[i] = value
        if work.scaling is not None:
            for i in range(work.ms):
                x[i] /= work.scaling[i]
    elif work.RinvD is not None:
        x = [value * scale for value, scale in zip(x, work.RinvD)]

    work.x[:n] = x

    if work.scaling is not None:
        for i in range(work.n_active):
            work.lam_star[i] *= work.scaling[work.WS[i]]


def warmstart_workspace(work: Workspace, working_set: Iterable[int]) -> None:
    """Rebuild the working set from ``working_set`` (all at upper bounds).

    Once the factorization turns singular the remaining constraints are
    left out and marked inactive.
    """
    work.reset()
    for index in working_set:
        if work.sing_ind == EMPTY_IND:
            add_constraint(work, index, 1.0)
        else:
            work.sense[index] &= ~Sense.ACTIVE