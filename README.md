# daqpy

A dual active-set solver for convex quadratic programs of the form

    minimize    0.5 x' H x + f' x
    subject to  lb  <=  x[:ms] <= ub     (the first ms constraints, simple bounds)
                lbA <=  A x    <= ubA    (the remaining m - ms constraints)

Besides plain QPs it handles:

- **linear programs**, through proximal-point iterations (`H=None` together
  with a nonzero `Settings.eps_prox`);
- **soft constraints**, whose violation is penalised rather than forbidden;
- **binary constraints**, which must end up active at one of their bounds,
  solved by depth-first branch and bound;
- **equality constraints**, detected automatically when a constraint's lower
  and upper bound coincide;
- **redundancy detection** for polyhedra `A x <= b`.

It uses only the standard library.

## Installation

    pip install .

## Solving a QP

```python
from daqpy.api import quadprog
from daqpy.model import Problem

problem = Problem(
    n=2, m=3, ms=2,
    H=[1.0, 0.0,
       0.0, 1.0],            # full symmetric n x n matrix, row-major
    f=[1.0, 1.0],
    A=[1.0, 2.0],            # row-major, (m - ms) x n
    bupper=[1.0, 1.0, 1.0],  # ub followed by ubA
    blower=[-1.0, -1.0, -1.0],
    sense=[0, 0, 0],
)
result = quadprog(problem)
print(result.exitflag, result.x, result.fval)
```

`Problem` checks the lengths of its sequences and raises `ValueError` on a
mismatch. `H=None` stands for the identity matrix and `f=None` for a zero
vector; `sense=None` makes every constraint an ordinary inequality.

`quadprog(problem, settings=None)` sets up a workspace and solves it. Pass a
`daqpy.model.Settings` to change tolerances, the iteration limit, the
proximal regularisation `eps_prox`, the soft-constraint weight `rho_soft`, or
the sub-optimality tolerances `rel_subopt` / `abs_subopt` used by branch and
bound.

The returned `daqpy.api.Result` holds the primal solution `x`, the dual
solution `lam` (one entry per constraint, zero for inactive ones), the
objective value `fval`, the soft-constraint penalty `soft_slack`, the
`exitflag`, the number of `iterations`, the number of explored branch-and-bound
`nodes` (1 without binaries), and the measured `solve_time` and `setup_time`
in seconds.

If the problem cannot be set up — a Hessian that is not positive definite,
an upper bound below its lower bound, linearly dependent equality
constraints, or more binary constraints than variables — a
`daqpy.model.SetupError` is raised; its `exitflag` attribute holds the
corresponding `ExitFlag`.

To solve a problem more than once, build the workspace once with
`daqpy.api.setup_workspace(problem, settings)` and call
`daqpy.api.solve(work)`.

## Exit flags

`daqpy.constants.ExitFlag` lists the outcomes:

| Flag | Meaning |
| --- | --- |
| `SOFT_OPTIMAL` (2) | optimal, with some soft constraint violated |
| `OPTIMAL` (1) | optimal |
| `INFEASIBLE` (-1) | no feasible point |
| `CYCLE` (-2) | the active set cycled |
| `UNBOUNDED` (-3) | the problem is unbounded |
| `ITERLIMIT` (-4) | iteration limit reached |
| `NONCONVEX` (-5) | `H` is not positive definite |
| `OVERDETERMINED_INITIAL` (-6) | the initial active set is overdetermined |

## Constraint sense

Each constraint carries bit flags from `daqpy.constants.Sense`: `ACTIVE`,
`LOWER`, `IMMUTABLE`, `SOFT`, `BINARY` and `SLACK_FIXED`. Mark a constraint
`Sense.ACTIVE | Sense.IMMUTABLE` to make it an equality held at its upper
bound (add `Sense.LOWER` for the lower bound), `Sense.SOFT` to allow
penalised violation, and `Sense.BINARY` to require it to be active at one of
its bounds.

## Redundant constraints

```python
from daqpy.api import minrep

flags = minrep(A, b, n, m, ms)
```

The first `ms` constraints are the simple bounds `x[i] <= b[i]`; `A` holds
the remaining `m - ms` rows, flat and row-major. The result has one entry per
constraint: `True` if it is redundant, `False` if it is not.

## Lower-level modules

The solver is built from modules that can also be used directly:
`daqpy.model` (`Problem`, `Settings`, `Workspace`), `daqpy.transform`
(turning a QP into a least-distance problem), `daqpy.solver` (the dual
active-set iterations), `daqpy.factorization` (LDL' updates),
`daqpy.auxiliary` (working-set operations), `daqpy.prox` (proximal-point
iterations) and `daqpy.bnb` (branch and bound).

## Pendulum control helpers

`daqpy.control` has the energy-based swing-up law for a rotary inverted
pendulum (`energy`, `swing_up_voltage`) and a linear state-feedback
stabiliser (`lqr_voltage`), whose `joystick_input` shifts the arm reference.

## What it does not do

The package is a library only: it has no command-line tool. It does not talk
to any pendulum hardware or read sensors, and it ships no prediction-horizon
matrices, so it provides no ready-made model predictive controller — to use
the solver for that, build the `Problem` from your own model data.