"""Branch and bound over binary constraints."""

from __future__ import annotations

from .auxiliary import add_constraint
from .constants import EMPTY_IND, ExitFlag, Sense, r_offset
from .model import Node, Workspace
from .solver import daqp_ldp

LOWER_BIT = 16
LOWER_FLAG = 1 << LOWER_BIT


def _has_lower_flag(x: int) -> bool:
    return bool(x & LOWER_FLAG)


def _remove_lower_flag(x: int) -> int:
    return x & ~LOWER_FLAG


def daqp_bnb(work: Workspace) -> int:
    """Solve a mixed-binary problem by depth-first branch and bound.

    On success the best integer-feasible point is left in ``work.u``.
    """
    settings = work.settings
    bnb = work.bnb
    fval_bound0 = settings.fval_bound
    eps_r = 1 / (1 + settings.rel_subopt)
    settings.fval_bound = (fval_bound0 - settings.abs_subopt) * eps_r

    bnb.neq = work.n_active
    bnb.itercount = 0
    bnb.nodecount = 0
    root = bnb.tree[0]
    root.depth = -1
    root.ws_start = 0
    root.ws_end = 0
    root.bin_id = 0
    bnb.n_nodes = 1
    bnb.n_clean = bnb.neq

    found = False
    while bnb.n_nodes > 0:
        bnb.n_nodes -= 1
        node = bnb.tree[bnb.n_nodes]
        exitflag = process_node(node, work)
        if exitflag == ExitFlag.INFEASIBLE:
            continue
        if exitflag < 0:
            settings.fval_bound = fval_bound0
            return exitflag

        branch_id = get_branch_id(work)
        if branch_id == EMPTY_IND:
            settings.fval_bound = (0.5 * work.fval - settings.abs_subopt) * eps_r
            work.xold, work.u = work.u, work.xold
            found = True
        else:
            spawn_children(node, branch_id, work)

    work.iterations = bnb.itercount
    work.fval = 2 * settings.fval_bound / eps_r + settings.abs_subopt
    settings.fval_bound = fval_bound0
    if not found:
        return ExitFlag.INFEASIBLE
    work.u, work.xold = work.xold, work.u
    return ExitFlag.OPTIMAL


def process_node(node: Node, work: Workspace) -> int:
    """Set up and solve the relaxation of ``node``, the node at the top
    of the stack (index ``work.bnb.n_nodes``)."""
    bnb = work.bnb
    index = bnb.n_nodes
    bnb.nodecount += 1
    if node.depth >= 0:
        bnb.fixed_ids[node.depth] = node.bin_id
        if bnb.n_nodes == 0 or bnb.tree[index - 1].depth != node.depth:
            # The sibling has been processed: restore the workspace.
            bnb.n_clean += node.depth - bnb.tree[index + 1].depth
            node_cleanup_workspace(bnb.n_clean, work)
            warmstart_node(node, work)
        else:
            add_upper_lower(node.bin_id, work)
            work.sense[_remove_lower_flag(node.bin_id)] |= Sense.IMMUTABLE

    exitflag = daqp_ldp(work)
    bnb.itercount += work.iterations

    if exitflag == ExitFlag.CYCLE:
        # Repair by a cold start from the fixed constraints.
        node_cleanup_workspace(bnb.n_clean, work)
        for i in range(bnb.n_clean - bnb.neq, node.depth + 1):
            add_upper_lower(bnb.fixed_ids[i], work)
            work.sense[_remove_lower_flag(bnb.fixed_ids[i])] |= Sense.IMMUTABLE
        bnb.n_clean = bnb.neq + node.depth
        exitflag = daqp_ldp(work)
        bnb.itercount += work.iterations
    return exitflag


def get_branch_id(work: Workspace) -> int:
    """Return the first inactive binary constraint, flagged as lower when
    its lower bound should be tried first, or EMPTY_IND if none remains."""
    branch_id = next(
        (i for i in work.bnb.bin_ids if not work.is_active(i)), EMPTY_IND
    )
    if branch_id == EMPTY_IND:
        return EMPTY_IND

    n = work.n
    diff = 0.5 * (work.dupper[branch_id] + work.dlower[branch_id])
    if work.is_simple(branch_id):
        if work.Rinv is None:
            diff -= work.u[branch_id]
        else:
            offset = r_offset(branch_id, n)
            diff -= sum(work.Rinv[offset + i] * work.u[i] for i in range(branch_id, n))
    else:
        offset = n * (branch_id - work.ms)
        diff -= sum(work.M[offset + i] * work.u[i] for i in range(n))
    return branch_id if diff < 0 else branch_id | LOWER_FLAG


def spawn_children(node: Node, branch_id: int, work: Workspace) -> None:
    """Replace ``node`` by its two children on the stack."""
    bnb = work.bnb
    index = bnb.n_nodes
    save_warmstart(node, work)

    node.bin_id = branch_id ^ LOWER_FLAG
    node.depth += 1

    child = bnb.tree[index + 1]
    child.bin_id = branch_id
    child.depth = node.depth
    child.ws_start = node.ws_start
    child.ws_end = node.ws_end
    bnb.n_nodes += 2


def node_cleanup_workspace(n_clean: int, work: Workspace) -> None:
    """Truncate the working set to its first ``n_clean`` constraints."""
    for index in work.WS[n_clean:work.n_active]:
        if work.is_binary(index):
            work.sense[index] &= ~(Sense.ACTIVE | Sense.IMMUTABLE)
        else:
            work.sense[index] &= ~Sense.ACTIVE
    work.sing_ind = EMPTY_IND
    work.n_active = n_clean
    work.reuse_ind = n_clean


def warmstart_node(node: Node, work: Workspace) -> None:
    """Re-add the fixed binaries and the saved working set of ``node``."""
    bnb = work.bnb
    for i in range(bnb.n_clean - bnb.neq, node.depth + 1):
        add_upper_lower(bnb.fixed_ids[i], work)
        work.sense[_remove_lower_flag(bnb.fixed_ids[i])] |= Sense.IMMUTABLE
    bnb.n_clean = bnb.neq + node.depth
    for i in range(node.ws_start, node.ws_end):
        add_upper_lower(bnb.tree_ws[i], work)
        if work.sing_ind != EMPTY_IND:
            work.n_active -= 1
            work.sense[work.WS[work.n_active]] &= ~Sense.ACTIVE
            work.sing_ind = EMPTY_IND
            break
    bnb.n_ws = node.ws_start


def save_warmstart(node: Node, work: Workspace) -> None:
    """Store the free part of the current working set for ``node``."""
    bnb = work.bnb
    node.ws_start = bnb.n_ws
    fixed_binary = Sense.IMMUTABLE | Sense.BINARY
    for index in work.WS[bnb.neq:work.n_active]:
        if work.sense[index] & fixed_binary == fixed_binary:
            continue
        bnb.tree_ws[bnb.n_ws] = index | LOWER_FLAG if work.is_lower(index) else index
        bnb.n_ws += 1
    node.ws_end = bnb.n_ws


def add_upper_lower(add_id: int, work: Workspace) -> None:
    """Activate a constraint at the bound encoded in ``add_id``."""
    index = _remove_lower_flag(add_id)
    if _has_lower_flag(add_id):
        work.sense[index] |= Sense.LOWER
        add_constraint(work, index, -1.0)
    else:
        work.sense[index] &= ~Sense.LOWER
        add_constraint(work, index, 1.0)