from __future__ import annotations

from typing import Optional, Sequence

from plan_kernel.core.derive.derive_relations import DerivedRelations, derive_relations
from plan_kernel.core.errors import PlanLintError
from plan_kernel.core.model import (
    RELATIONS,
    ActionGate,
    NodeKind,
    PlanNode,
    Relation,
    all_relations,
    targets,
)


# Plan lint rules, run on a built graph in addition to validation:
# - L_SELF_REFERENCE: a node lists itself in a same-kind relation
# - L_CYCLE_DETECTED: cycle through a same-kind relation (milestone deps, repo deps,
#   action gate blocked_by, decision superseded_by)
# - L_UNREFERENCED_NODE: a leaf node nothing points at
# - L_GATE_LINK_ASYMMETRY: A.unlocks B without B.blocked_by A, or vice versa

# Same-kind relations where a cycle is a planning defect. action-gate.unlocks
# mirrors blocked_by, so it is covered by the asymmetry rule instead.
CYCLE_RELATIONS: tuple[tuple[NodeKind, str], ...] = (
    ("milestone", "depends_on_milestones"),
    ("repository", "depends_on"),
    ("repository", "upstream"),
    ("action-gate", "blocked_by"),
    ("decision", "superseded_by"),
)

LEAF_KINDS: tuple[NodeKind, ...] = tuple(k for k, rels in RELATIONS.items() if not rels)


def lint_plan(
    nodes: Sequence[PlanNode], relations: Optional[DerivedRelations] = None
) -> list[PlanLintError]:
    """Lint a built plan graph.

    Lint is advisory: it runs on graphs that already built (no dangling
    references) and reports structure that validation accepts but that is
    likely a planning mistake.
    """

    derived = relations or derive_relations(nodes)
    errors: list[PlanLintError] = []

    for kind, field in CYCLE_RELATIONS:
        relation = _relation(kind, field)
        members = [n for n in nodes if n.kind == kind]
        for node in members:
            if node in targets(node, relation):
                errors.append(
                    PlanLintError(
                        code="L_SELF_REFERENCE",
                        message=f"{field} references the node itself",
                        node_id=node.id,
                    )
                )
        for node, msg in _detect_cycles(members, relation):
            errors.append(PlanLintError(code="L_CYCLE_DETECTED", message=msg, node_id=node.id))

    # Rule: leaf nodes nobody references
    incoming = {r.reverse for r in all_relations() if r.target in LEAF_KINDS}
    for node in nodes:
        if node.kind not in LEAF_KINDS:
            continue
        if not any(derived.get(name, node) for name in incoming):
            errors.append(
                PlanLintError(
                    code="L_UNREFERENCED_NODE",
                    message=f"{node.kind} is not referenced by any other node",
                    node_id=node.id,
                )
            )

    # Rule: blocked_by / unlocks must mirror each other
    for node in nodes:
        if not isinstance(node, ActionGate):
            continue
        for other in node.unlocks:
            if isinstance(other, ActionGate) and node not in other.blocked_by:
                errors.append(
                    PlanLintError(
                        code="L_GATE_LINK_ASYMMETRY",
                        message=f'unlocks "{other.id}" but "{other.id}" is not blocked_by "{node.id}"',
                        node_id=node.id,
                    )
                )
        for other in node.blocked_by:
            if isinstance(other, ActionGate) and node not in other.unlocks:
                errors.append(
                    PlanLintError(
                        code="L_GATE_LINK_ASYMMETRY",
                        message=f'blocked_by "{other.id}" but "{other.id}" does not unlock "{node.id}"',
                        node_id=node.id,
                    )
                )

    return errors


def _relation(kind: NodeKind, field: str) -> Relation:
    for r in RELATIONS[kind]:
        if r.field == field:
            return r
    raise KeyError(f"{kind}.{field}")


def _detect_cycles(members: list[PlanNode], relation: Relation) -> list[tuple[PlanNode, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[PlanNode, int] = {n: WHITE for n in members}
    stack: list[PlanNode] = []
    emitted: set[str] = set()
    out: list[tuple[PlanNode, str]] = []

    def dfs(u: PlanNode) -> None:
        state[u] = GRAY
        stack.append(u)
        for v in targets(u, relation):
            if v not in state or v is u:
                continue
            if state[v] == GRAY:
                # cycle: v ... u -> v
                idx = next(i for i, n in enumerate(stack) if n is v)
                cycle = [n.id for n in stack[idx:]] + [v.id]
                key = "->".join(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((u, f"{relation.field} cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                dfs(v)
        stack.pop()
        state[u] = BLACK

    for node in members:
        if state[node] == WHITE:
            dfs(node)

    return out
