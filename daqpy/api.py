"""High-level entry points: set up, solve and extract results."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .bnb import daqp_bnb
from .constants import (
    DAQP_INF,
    UPDATE_D,
    UPDATE_M,
    UPDATE_RINV,
    UPDATE_SENSE,
    UPDATE_V,
    ExitFlag,
    Sense,
    arsum,
)
from .model import BnBState, Problem, SetupError, Settings, Workspace
from .prox import daqp_prox
from .solver import daqp_ldp, ldp2qp_solution
from .transform import minrep_work, update_ldp


def _as_exitflag(flag: int) -> int:
    try:
        return ExitFlag(flag)
    except ValueError:
        return flag


@dataclass
class Result:
    """Outcome of a solve."""

    x: list[float]
    lam: list[float]
    fval: float
    soft_slack: float
    exitflag: int
    iterations: int
    nodes: int
    solve_time: float = 0.0
    setup_time: float = field(default=0.0)


def setup_workspace(problem: Problem, settings: Optional[Settings] = None) -> Workspace:
    """Build a workspace holding the least-distance form of ``problem``.

    Raises SetupError if the problem is infeasible by its bounds, not
    convex, or over-determined by its equality or binary constraints.
    """
    sense = problem.sense or [0] * problem.m
    ns = sum(1 for s in sense if s & Sense.SOFT)
    nb = sum(1 for s in sense if s & Sense.BINARY)

    work = Workspace(problem.n, problem.m, problem.ms, ns=ns, settings=settings)
    work.qp = problem
    work.scaling = [1.0] * problem.m
    work.M = [0.0] * (problem.n * (problem.m - problem.ms))

    mask = UPDATE_M | UPDATE_D | UPDATE_SENSE
    if problem.H is not None:
        work.Rinv = [0.0] * arsum(problem.n)
        mask |= UPDATE_RINV
    if problem.f is not None or work.settings.eps_prox != 0:
        work.v = [0.0] * problem.n
        mask |= UPDATE_V

    update_ldp(mask, work)

    if nb > work.n:
        raise SetupError(
            ExitFlag.OVERDETERMINED_INITIAL, "more binary constraints than variables"
        )
    if nb > 0:
        bin_ids = [i for i, s in enumerate(sense) if s & Sense.BINARY]
        work.bnb = BnBState(bin_ids, ws_size=work.n + ns + 1)
    return work


def _extract_result(work: Workspace, exitflag: int) -> Result:
    n = work.n
    x = list(work.x[:n])

    lam = [0.0] * work.m
    for index, value in zip(work.WS[:work.n_active], work.lam_star):
        lam[index] = value

    settings = work.settings
    fval = 0.0
    if work.v is not None and (
        settings.eps_prox == 0 or work.Rinv is not None or work.RinvD is not None
    ):
        fval = 0.5 * (work.fval - sum(v * v for v in work.v[:n]))
        if settings.eps_prox != 0:
            # Compensate for the proximal regularization.
            fval += settings.eps_prox * sum(xi * xi for xi in x)
    elif work.qp is not None and work.qp.f is not None:
        fval = sum(fi * xi for fi, xi in zip(work.qp.f, x))

    return Result(
        x=x,
        lam=lam,
        fval=fval,
        soft_slack=work.soft_slack,
        exitflag=_as_exitflag(exitflag),
        iterations=work.iterations,
        nodes=1 if work.bnb is None else work.bnb.nodecount,
    )


def solve(work: Workspace) -> Result:
    """Solve the problem held in a prepared workspace."""
    start = time.perf_counter()
    if work.settings.eps_prox == 0:
        if work.bnb is not None:
            exitflag = daqp_bnb(work)
        else:
            exitflag = daqp_ldp(work)
        if exitflag > 0:
            ldp2qp_solution(work)
    else:
        exitflag = daqp_prox(work)
    elapsed = time.perf_counter() - start

    result = _extract_result(work, exitflag)
    result.solve_time = elapsed
    return result


def quadprog(problem: Problem, settings: Optional[Settings] = None) -> Result:
    """Set up and solve ``problem``; setup failures raise SetupError."""
    start = time.perf_counter()
    work = setup_workspace(problem, settings)
    setup_time = time.perf_counter() - start
    result = solve(work)
    result.setup_time = setup_time
    return result


def minrep(
    A: Sequence[float], b: Sequence[float], n: int, m: int, ms: int = 0
) -> list[Optional[bool]]:
    """Find redundant constraints of the polyhedron ``A x <= b``.

    The first ``ms`` constraints are simple bounds on ``x[:ms]``; ``A``
    holds the remaining ``m - ms`` rows, flat and row-major.
    """
    rows = [float(a) for a in A]
    bounds = [float(v) for v in b]
    if len(rows) != (m - ms) * n:
        raise ValueError(f"A must have {(m - ms) * n} elements, got {len(rows)}")
    if len(bounds) != m:
        raise ValueError(f"b must have {m} elements, got {len(bounds)}")
    work = Workspace(n, m, ms)
    work.M = rows
    work.dupper = bounds
    work.dlower = [-DAQP_INF] * m
    work.sense = [0] * m
    return minrep_work(work)