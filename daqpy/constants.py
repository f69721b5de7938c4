"""Constants, flags and index helpers shared by the solver modules."""

from __future__ import annotations

from enum import IntEnum, IntFlag

EMPTY_IND = -1
DAQP_INF = 1e30

DEFAULT_PRIM_TOL = 1e-6
DEFAULT_DUAL_TOL = 1e-12
DEFAULT_ZERO_TOL = 1e-11
DEFAULT_PROG_TOL = 1e-14
DEFAULT_PIVOT_TOL = 1e-6
DEFAULT_CYCLE_TOL = 10
DEFAULT_ETA = 1e-6
DEFAULT_ITER_LIMIT = 1000
DEFAULT_RHO_SOFT = 1e-3
DEFAULT_REL_SUBOPT = 0.0
DEFAULT_ABS_SUBOPT = 0.0

# Masks selecting which parts of the least-distance problem to rebuild.
UPDATE_RINV = 1
UPDATE_M = 2
UPDATE_V = 4
UPDATE_D = 8
UPDATE_SENSE = 16


class ExitFlag(IntEnum):
    """Outcome of a solve."""

    SOFT_OPTIMAL = 2
    OPTIMAL = 1
    INFEASIBLE = -1
    CYCLE = -2
    UNBOUNDED = -3
    ITERLIMIT = -4
    NONCONVEX = -5
    OVERDETERMINED_INITIAL = -6


class Sense(IntFlag):
    """State bits of a single constraint."""

    ACTIVE = 1
    LOWER = 2
    IMMUTABLE = 4
    SOFT = 8
    BINARY = 16
    SLACK_FIXED = 32


def arsum(x: int) -> int:
    """Return the arithmetic sum 0 + 1 + ... + x."""
    return x * (x + 1) // 2


def r_offset(row: int, n: int) -> int:
    """Offset such that element (row, j), j >= row, of a packed upper
    triangular n x n matrix sits at index r_offset(row, n) + j."""
    return ((2 * n - row - 1) * row) // 2