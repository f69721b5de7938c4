"""Transformation of a quadratic program into a least-distance problem."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .auxiliary import activate_constraints, add_constraint, deactivate_constraints
from .constants import (
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
from .model import SetupError, Workspace
from .solver import daqp_ldp


def update_ldp(mask: int, work: Workspace) -> None:
    """Rebuild the parts of the least-distance problem selected by ``mask``.

    Raises SetupError when the problem is trivially infeasible, not
    convex, or has linearly dependent equality constraints.
    """
    qp = work.qp
    m = work.m
    do_activate = False

    if mask & UPDATE_SENSE:
        if qp.sense is None:
            work.sense[:m] = [0] * m
        else:
            work.sense[:m] = list(qp.sense)
            do_activate = True

    if mask & UPDATE_RINV:
        update_rinv(work)

    if mask & (UPDATE_RINV | UPDATE_M):
        update_m(work, mask)
        normalize_m(work)

    if mask & (UPDATE_RINV | UPDATE_V):
        update_v(qp.f, work, mask)

    if mask & UPDATE_RINV:
        normalize_rinv(work)

    if mask & (UPDATE_RINV | UPDATE_M | UPDATE_V | UPDATE_D):
        settings = work.settings
        for i in range(m):
            if work.is_immutable(i):
                continue
            diff = qp.bupper[i] - qp.blower[i]
            if diff < -settings.primal_tol:
                raise SetupError(
                    ExitFlag.INFEASIBLE, f"constraint {i} has upper bound below lower bound"
                )
            if diff < settings.zero_tol:
                # Equal bounds: treat as an equality constraint.
                work.sense[i] |= Sense.ACTIVE | Sense.IMMUTABLE
                do_activate = True
        update_d(work)

    if do_activate:
        work.reset()
        flag = activate_constraints(work)
        if flag < 0:
            raise SetupError(flag, "initially active constraints are linearly dependent")


def update_rinv(work: Workspace) -> None:
    """Compute the inverse Cholesky factor of ``H + eps_prox I``.

    A diagonal Hessian is kept as the vector ``RinvD`` instead.
    """
    n = work.n
    H = work.qp.H
    eps = work.settings.eps_prox

    diagonal = not any(
        H[i * n + j] > 1e-12 or H[i * n + j] < -1e-12
        for i in range(n)
        for j in range(i + 1, n)
    )

    if diagonal:
        if work.Rinv is not None:
            work.RinvD, work.Rinv = work.Rinv, None
        if work.RinvD is None:
            work.RinvD = [0.0] * n
        for i in range(n):
            h = H[i * n + i] + eps
            if h <= 0:
                raise SetupError(ExitFlag.NONCONVEX, "Hessian is not positive definite")
            root = math.sqrt(h)
            work.RinvD[i] = 1 / root
            if work.scaling is not None and i < work.ms:
                work.scaling[i] = root
        return

    if work.RinvD is not None and work.Rinv is None:
        work.Rinv, work.RinvD = work.RinvD, None
    if work.Rinv is None or len(work.Rinv) < arsum(n):
        work.Rinv = [0.0] * arsum(n)

    # Upper Cholesky factor R with H + eps I = R'R.
    R = [[0.0] * n for _ in range(n)]
    for i in range(n):
        pivot = H[i * n + i] + eps - sum(R[k][i] * R[k][i] for k in range(i))
        if pivot <= 0:
            raise SetupError(ExitFlag.NONCONVEX, "Hessian is not positive definite")
        R[i][i] = math.sqrt(pivot)
        for j in range(i + 1, n):
            value = H[i * n + j] - sum(R[k][i] * R[k][j] for k in range(i))
            R[i][j] = value / R[i][i]

    # Row by row solve of X R = I.
    packed = work.Rinv
    for k in range(n):
        row = [0.0] * n
        row[k] = 1 / R[k][k]
        for i in range(k + 1, n):
            row[i] = -sum(row[l] * R[l][i] for l in range(k, i)) / R[i][i]
        offset = r_offset(k, n)
        for j in range(k, n):
            packed[offset + j] = row[j]


def _row_divisor(work: Workspace, row: int, mask: int) -> float:
    # Simple-bound rows of a normalized Rinv carry a scaling to undo.
    if not mask & UPDATE_RINV and row < work.ms:
        return work.scaling[row]
    return 1.0


def update_m(work: Workspace, mask: int) -> None:
    """Compute ``M = A Rinv`` for the general constraints."""
    n = work.n
    A = work.qp.A
    m_general = work.m - work.ms
    M: list[float] = []

    if work.Rinv is not None:
        rinv = work.Rinv
        divisors = [_row_divisor(work, r, mask) for r in range(n)]
        for k in range(m_general):
            row = [0.0] * n
            for r, a in enumerate(A[k * n:(k + 1) * n]):
                weight = a / divisors[r]
                offset = r_offset(r, n)
                for c in range(r, n):
                    row[c] += rinv[offset + c] * weight
            M.extend(row)
    elif work.RinvD is None:
        M = list(A[:m_general * n])
    else:
        for k in range(m_general):
            M.extend(a * d for a, d in zip(A[k * n:(k + 1) * n], work.RinvD))

    work.M = M
    work.reset()


def update_v(f: Optional[Sequence[float]], work: Workspace, mask: int) -> None:
    """Compute ``v = Rinv' f``."""
    if work.v is None or f is None:
        return
    n = work.n
    f = list(f)
    if work.Rinv is None:
        if work.RinvD is not None:
            work.v[:n] = [fi * d for fi, d in zip(f, work.RinvD)]
        else:
            work.v[:n] = f[:n]
        return

    rinv = work.Rinv
    v = [0.0] * n
    for j in range(n):
        weight = f[j] / _row_divisor(work, j, mask)
        offset = r_offset(j, n)
        for i in range(j, n):
            v[i] += rinv[offset + i] * weight
    work.v[:n] = v


def update_d(work: Workspace) -> None:
    """Compute the constraint bounds ``d = b + M v`` of the least-distance problem."""
    qp = work.qp
    n = work.n
    m = work.m
    work.reuse_ind = 0

    if work.scaling is not None:
        work.dupper = [b * s for b, s in zip(qp.bupper, work.scaling)]
        work.dlower = [b * s for b, s in zip(qp.blower, work.scaling)]
    else:
        work.dupper = list(qp.bupper)
        work.dlower = list(qp.blower)

    v = work.v
    if v is None:
        return

    for i in range(work.ms):
        if work.Rinv is not None:
            offset = r_offset(i, n)
            shift = sum(work.Rinv[offset + j] * v[j] for j in range(i, n))
        else:
            shift = v[i]
        work.dupper[i] += shift
        work.dlower[i] += shift

    for i in range(work.ms, m):
        offset = n * (i - work.ms)
        shift = sum(work.M[offset + j] * v[j] for j in range(n))
        work.dupper[i] += shift
        work.dlower[i] += shift


def normalize_rinv(work: Workspace) -> None:
    """Scale the simple-bound rows of ``Rinv`` to unit norm."""
    if work.Rinv is None:
        return
    n = work.n
    rinv = work.Rinv
    for i in range(work.ms):
        offset = r_offset(i, n)
        norm2 = sum(rinv[offset + j] ** 2 for j in range(i, n))
        scale = 1 / math.sqrt(norm2)
        work.scaling[i] = scale
        for j in range(i, n):
            rinv[offset + j] *= scale


def normalize_m(work: Workspace) -> None:
    """Scale the rows of ``M`` to unit norm; zero rows become ignored."""
    n = work.n
    M = work.M
    for i in range(work.ms, work.m):
        offset = n * (i - work.ms)
        norm2 = sum(M[offset + j] ** 2 for j in range(n))
        if norm2 < work.settings.zero_tol:
            work.sense[i] = Sense.IMMUTABLE
            continue
        scale = 1 / math.sqrt(norm2)
        work.scaling[i] = scale
        for j in range(n):
            M[offset + j] *= scale


def minrep_work(work: Workspace) -> list[Optional[bool]]:
    """Classify each constraint of ``M u <= dupper`` as redundant or not.

    Constraints that are immutable from the start and never appear in an
    optimal working set are reported as None.
    """
    m = work.m
    redundant: list[Optional[bool]] = [None] * m
    for i in range(m):
        if redundant[i] is not None or work.sense[i] & Sense.IMMUTABLE:
            continue
        work.reset()
        work.sense[i] = Sense.ACTIVE | Sense.IMMUTABLE
        add_constraint(work, i, 1.0)
        exitflag = daqp_ldp(work)
        if exitflag == ExitFlag.INFEASIBLE:
            redundant[i] = True
            # Stays immutable and is thereby ignored from now on.
            work.sense[i] &= ~Sense.ACTIVE
        else:
            redundant[i] = False
            work.sense[i] &= ~Sense.IMMUTABLE
            if exitflag == ExitFlag.OPTIMAL:
                for index in work.WS[:work.n_active]:
                    redundant[index] = False
        deactivate_constraints(work)
    return redundant