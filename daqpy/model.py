"""Problem, settings and workspace data for the solver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .constants import (
    DAQP_INF,
    DEFAULT_ABS_SUBOPT,
    DEFAULT_CYCLE_TOL,
    DEFAULT_DUAL_TOL,
    DEFAULT_ETA,
    DEFAULT_ITER_LIMIT,
    DEFAULT_PIVOT_TOL,
    DEFAULT_PRIM_TOL,
    DEFAULT_PROG_TOL,
    DEFAULT_REL_SUBOPT,
    DEFAULT_RHO_SOFT,
    DEFAULT_ZERO_TOL,
    EMPTY_IND,
    Sense,
    arsum,
)


class SetupError(Exception):
    """Raised when a problem cannot be turned into a solvable workspace."""

    def __init__(self, exitflag: int, message: str = "") -> None:
        self.exitflag = exitflag
        super().__init__(message or f"setup failed with exit flag {exitflag}")


@dataclass
class Settings:
    """Solver tolerances and limits."""

    primal_tol: float = DEFAULT_PRIM_TOL
    dual_tol: float = DEFAULT_DUAL_TOL
    zero_tol: float = DEFAULT_ZERO_TOL
    pivot_tol: float = DEFAULT_PIVOT_TOL
    progress_tol: float = DEFAULT_PROG_TOL
    cycle_tol: int = DEFAULT_CYCLE_TOL
    iter_limit: int = DEFAULT_ITER_LIMIT
    fval_bound: float = DAQP_INF
    eps_prox: float = 0.0
    eta_prox: float = DEFAULT_ETA
    rho_soft: float = DEFAULT_RHO_SOFT
    rel_subopt: float = DEFAULT_REL_SUBOPT
    abs_subopt: float = DEFAULT_ABS_SUBOPT


def _floats(values: Optional[Sequence[float]], size: int, name: str) -> Optional[list[float]]:
    if values is None:
        return None
    result = [float(v) for v in values]
    if len(result) != size:
        raise ValueError(f"{name} must have {size} elements, got {len(result)}")
    return result


@dataclass
class Problem:
    """Quadratic program

        min 0.5 x'Hx + f'x  s.t.  lb <= x[:ms] <= ub,  lbA <= A x <= ubA

    with ``bupper = ub + ubA`` and ``blower = lb + lbA``. H (n*n) and
    A ((m-ms)*n) are flat row-major sequences; H=None means identity
    and f=None means zero.
    """

    n: int
    m: int
    ms: int = 0
    H: Optional[Sequence[float]] = None
    f: Optional[Sequence[float]] = None
    A: Sequence[float] = ()
    bupper: Sequence[float] = ()
    blower: Sequence[float] = ()
    sense: Optional[Sequence[int]] = None

    def __post_init__(self) -> None:
        if self.n < 1:
            raise ValueError("n must be positive")
        if not 0 <= self.ms <= self.m:
            raise ValueError("ms must lie between 0 and m")
        if self.ms > self.n:
            raise ValueError("ms cannot exceed n")
        self.H = _floats(self.H, self.n * self.n, "H")
        self.f = _floats(self.f, self.n, "f")
        self.A = _floats(self.A, (self.m - self.ms) * self.n, "A")
        self.bupper = _floats(self.bupper, self.m, "bupper")
        self.blower = _floats(self.blower, self.m, "blower")
        if self.sense is not None:
            sense = [int(s) for s in self.sense]
            if len(sense) != self.m:
                raise ValueError(f"sense must have {self.m} elements, got {len(sense)}")
            self.sense = sense


@dataclass
class Node:
    """A node of the branch-and-bound tree."""

    bin_id: int = 0
    depth: int = 0
    ws_start: int = 0
    ws_end: int = 0


@dataclass
class BnBState:
    """Branch-and-bound bookkeeping; ``ws_size`` is the working-set
    capacity stored per tree level."""

    bin_ids: list[int]
    ws_size: int
    nb: int = field(init=False)
    tree: list[Node] = field(init=False)
    tree_ws: list[int] = field(init=False)
    fixed_ids: list[int] = field(init=False)
    neq: int = 0
    n_nodes: int = 0
    n_ws: int = 0
    n_clean: int = 0
    nodecount: int = 0
    itercount: int = 0

    def __post_init__(self) -> None:
        self.bin_ids = list(self.bin_ids)
        self.nb = len(self.bin_ids)
        self.tree = [Node() for _ in range(self.nb + 1)]
        self.tree_ws = [0] * (self.ws_size * (self.nb + 1))
        self.fixed_ids = [0] * (self.nb + 1)


class Workspace:
    """Least-distance problem data, iterates and LDL' factors.

    ``Rinv`` holds a packed upper triangular matrix, ``M`` the flat
    row-major transformed general constraints and ``L`` the packed
    strictly-lower part of the unit lower triangular factor.
    """

    def __init__(
        self,
        n: int,
        m: int = 0,
        ms: int = 0,
        *,
        ns: int = 0,
        settings: Optional[Settings] = None,
    ) -> None:
        if n < 1:
            raise ValueError("n must be positive")
        if not 0 <= ms <= m:
            raise ValueError("ms must lie between 0 and m")
        if ms > n:
            raise ValueError("ms cannot exceed n")
        if ns < 0:
            raise ValueError("ns cannot be negative")

        self.qp: Optional[Problem] = None
        self.n = n
        self.m = m
        self.ms = ms
        self.settings = settings if settings is not None else Settings()

        self.M: Optional[list[float]] = None
        self.dupper = [0.0] * m
        self.dlower = [0.0] * m
        self.sense = [0] * m
        self.scaling: Optional[list[float]] = None
        self.Rinv: Optional[list[float]] = None
        self.RinvD: Optional[list[float]] = None
        self.v: Optional[list[float]] = None

        size = n + ns + 1
        self.lam = [0.0] * size
        self.lam_star = [0.0] * size
        self.WS = [0] * size
        self.D = [0.0] * size
        self.xldl = [0.0] * size
        self.zldl = [0.0] * size
        self.L = [0.0] * arsum(size)

        self.u = [0.0] * n
        self.x = self.u
        self.xold = [0.0] * n

        self.fval = 0.0
        self.soft_slack = 0.0
        self.iterations = 0
        self.bnb: Optional[BnBState] = None

        self.sing_ind = EMPTY_IND
        self.n_active = 0
        self.reuse_ind = 0

    def reset(self) -> None:
        """Empty the working set and drop reusable factor information."""
        self.sing_ind = EMPTY_IND
        self.n_active = 0
        self.reuse_ind = 0

    def is_simple(self, index: int) -> bool:
        return index < self.ms

    def is_active(self, index: int) -> bool:
        return bool(self.sense[index] & Sense.ACTIVE)

    def is_lower(self, index: int) -> bool:
        return bool(self.sense[index] & Sense.LOWER)

    def is_immutable(self, index: int) -> bool:
        return bool(self.sense[index] & Sense.IMMUTABLE)

    def is_soft(self, index: int) -> bool:
        return bool(self.sense[index] & Sense.SOFT)

    def is_binary(self, index: int) -> bool:
        return bool(self.sense[index] & Sense.BINARY)