"""Rank-one updates of the LDL' factors of the active constraint Gram matrix."""

from __future__ import annotations

import math
from typing import Optional

from .constants import EMPTY_IND, Sense, arsum, r_offset
from .model import Workspace

# A constraint row: (first nonzero column, backing data or None for a unit
# vector, offset into the data such that column j sits at offset + j).
_Row = tuple[int, Optional[list[float]], int]


def _div(a: float, b: float) -> float:
    """Floating division that yields inf/nan instead of raising."""
    if b != 0.0:
        return a / b
    if a == 0.0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _row(work: Workspace, index: int) -> _Row:
    if work.is_simple(index):
        if work.Rinv is None:
            return index, None, 0
        return index, work.Rinv, r_offset(index, work.n)
    return 0, work.M, work.n * (index - work.ms)


def _squared_norm(row: _Row, n: int) -> float:
    start, data, offset = row
    if data is None:
        return 1.0
    total = 0.0
    for col in range(start, n):
        value = data[offset + col]
        total += value * value
    return total


def _cross(row_k: _Row, row_i: _Row, n: int) -> float:
    start_k, data_k, off_k = row_k
    start_i, data_i, off_i = row_i
    first = max(start_k, start_i)
    if data_k is None:
        return 0.0 if data_i is None else data_i[off_i + first]
    if data_i is None:
        return data_k[off_k + first]
    total = 0.0
    for col in range(first, n):
        total += data_k[off_k + col] * data_i[off_i + col]
    return total


def _soft_slack_free(work: Workspace, index: int) -> bool:
    return work.is_soft(index) and not work.sense[index] & Sense.SLACK_FIXED


def update_ldl_add(work: Workspace, add_ind: int) -> None:
    """Extend the factors with constraint ``add_ind`` placed last.

    Marks ``work.sing_ind`` when the extended Gram matrix is singular.
    """
    work.sing_ind = EMPTY_IND
    n = work.n
    n_active = work.n_active
    row_new = _row(work, add_ind)

    diag = _squared_norm(row_new, n)
    ns_active = 0
    if _soft_slack_free(work, add_ind):
        scale = 1.0 if work.scaling is None else work.scaling[add_ind]
        diag += work.settings.rho_soft * scale * scale
        ns_active += 1
    work.D[n_active] = diag

    if n_active == 0:
        return

    column = []
    for index in work.WS[:n_active]:
        if _soft_slack_free(work, index):
            ns_active += 1
        column.append(_cross(_row(work, index), row_new, n))

    L = work.L
    for i in range(n_active):
        base = arsum(i)
        value = column[i]
        for j in range(i):
            value -= L[base + j] * column[j]
        column[i] = value

    new_start = arsum(n_active)
    for i, (value, d) in enumerate(zip(column, work.D[:n_active])):
        scaled = _div(value, d)
        L[new_start + i] = scaled
        diag -= value * scaled
    work.D[n_active] = diag

    if diag < work.settings.zero_tol or n_active >= n + ns_active:
        work.sing_ind = n_active
        work.D[n_active] = 0.0


def update_ldl_remove(work: Workspace, rm_ind: int) -> None:
    """Drop the factor row/column at position ``rm_ind`` and restore
    the factorization of the remaining constraints."""
    n_active = work.n_active
    if n_active == rm_ind + 1:
        return
    L = work.L
    D = work.D
    n_update = n_active - rm_ind - 1

    # Shift rows below rm_ind up, collecting the removed column in w.
    new_disp = arsum(rm_ind)
    old_disp = new_disp + rm_ind + 1
    w: list[float] = []
    for i in range(rm_ind + 1, n_active):
        for j in range(i):
            if j == rm_ind:
                w.append(L[old_disp])
            else:
                L[new_disp] = L[old_disp]
                new_disp += 1
            old_disp += 1
        old_disp += 1
        new_disp += 1

    # Rank-one update of the trailing block (Gill et al. 1974, method C1).
    alpha = D[rm_ind]
    old_disp = arsum(rm_ind) + rm_ind
    for j in range(n_update):
        i = rm_ind + 1 + j
        p = w[j]
        dbar = D[i] + alpha * p * p
        D[i - 1] = dbar
        beta = _div(p * alpha, dbar)
        alpha = _div(D[i] * alpha, dbar)

        old_disp += i
        new_disp = old_disp + j
        for r in range(j + 1, n_update):
            w[r] -= p * L[new_disp]
            L[new_disp] += beta * w[r]
            new_disp += rm_ind + r + 1