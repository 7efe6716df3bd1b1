from __future__ import annotations

import datetime
from typing import Any, Optional, cast

from plan_kernel.core.errors import PlanBuildError
from plan_kernel.core.model import (
    ALL_KINDS,
    NODE_CLASSES,
    RELATIONS,
    TIMELINE_VARIANTS,
    NodeKind,
    PlanNode,
    Relation,
    TimelineConfig,
    Timelines,
)


# Definition section per kind. Kinds are resolved in ALL_KINDS order, so a
# relation can only point at an earlier kind unless it is linked in the second
# pass (see _is_deferred).
SECTIONS: dict[NodeKind, str] = {
    "primitive": "primitives",
    "supplier": "suppliers",
    "customer": "customers",
    "competitor": "competitors",
    "supplier-primitive": "supplier_primitives",
    "tooling": "tooling",
    "risk": "risks",
    "capability": "capabilities",
    "product": "products",
    "project": "projects",
    "milestone": "milestones",
    "thesis": "thesis",
    "repository": "repositories",
    "constraint": "constraints",
    "proxy-metric": "proxy_metrics",
    "competency": "competencies",
    "diagnosis": "diagnoses",
    "action-gate": "action_gates",
    "guiding-policy": "guiding_policies",
    "assumption": "assumptions",
    "decision": "decisions",
}

# Non-relation fields: field -> (shape, default). A default of ... marks a
# required field.
SCALAR_FIELDS: dict[NodeKind, dict[str, tuple[str, Any]]] = {
    "competitor": {"threat_level": ("str", "low")},
    "risk": {"status": ("str", "active")},
    "milestone": {
        "expected_revenue": ("number", 0),
        "expected_costs": ("number", 0),
        "timelines": ("timelines", ...),
    },
    "repository": {
        "url": ("str", ""),
        "stack_level": ("int", 0),
        "repo_type": ("str", "owned"),
        "language": ("str", ""),
    },
    "constraint": {"severity": ("str", "soft"), "category": ("str", "")},
    "proxy-metric": {
        "current_value": ("number", 0),
        "target_value": ("number", 0),
        "frequency": ("str", "monthly"),
        "unit": ("str", ""),
    },
    "action-gate": {"action": ("str", ""), "pass_criteria": ("str_list", ())},
    "assumption": {
        "statement": ("str", ""),
        "test_method": ("str", ""),
        "validation_criteria": ("str_list", ()),
        "invalidation_criteria": ("str_list", ()),
        "current_evidence": ("str_list", ()),
        "confidence": ("number", 0),
        "status": ("str", "untested"),
    },
    "decision": {
        "context": ("str", ""),
        "choice": ("str", ""),
        "rationale": ("str", ""),
        "alternatives": ("str_list", ()),
        "tradeoffs": ("str_list", ()),
        "reversal_triggers": ("str_list", ()),
        "review_date": ("date", ""),
        "status": ("str", "proposed"),
    },
}

# Single relations that must be present ("exactly one").
REQUIRED_RELATIONS: set[tuple[NodeKind, str]] = {
    ("supplier-primitive", "supplier"),
    ("guiding-policy", "addresses_diagnosis"),
}

_ORDER: dict[NodeKind, int] = {k: i for i, k in enumerate(ALL_KINDS)}


def build_graph(definition: dict[str, Any]) -> list[PlanNode]:
    """Resolve a declarative graph definition into linked plan nodes.

    The definition holds one section per kind (see SECTIONS), each mapping a
    node id to its definition. Relation fields hold string ids; they are
    replaced by references to the single canonical node instance.

    Relations whose target kind is not built yet (same-kind references such as
    milestone -> milestone, and milestone.gated_by -> action gates) are linked
    in a second pass once every node of the target kind exists.

    Fails fast: the first malformed definition or dangling reference raises
    PlanBuildError. Returns nodes grouped by kind in build order.
    """

    file = definition.get("__file__")
    file = file if isinstance(file, str) else None

    known_sections = set(SECTIONS.values())
    for key in definition:
        if key == "__file__":
            continue
        if key not in known_sections:
            raise PlanBuildError(
                code="E_UNKNOWN_SECTION",
                message=f"unknown section: {key} (choose from: {', '.join(sorted(known_sections))})",
                file=file,
            )

    pools: dict[NodeKind, dict[str, PlanNode]] = {}
    seen_ids: dict[str, NodeKind] = {}
    pending: list[tuple[PlanNode, Relation, list[str]]] = []

    for kind in ALL_KINDS:
        section = definition.get(SECTIONS[kind])
        if section is None:
            section = {}
        if not isinstance(section, dict):
            raise PlanBuildError(
                code="E_INVALID_TYPE",
                message=f"section {SECTIONS[kind]} must be a mapping of id -> definition",
                file=file,
            )

        pool: dict[str, PlanNode] = {}
        for node_id, raw in section.items():
            if not isinstance(node_id, str) or not node_id.strip():
                raise PlanBuildError(
                    code="E_REQUIRED_FIELD",
                    message=f"{SECTIONS[kind]} ids must be non-empty strings",
                    file=file,
                    kind=kind,
                )
            if node_id in seen_ids:
                raise PlanBuildError(
                    code="E_DUPLICATE_ID",
                    message=f'Duplicate node ID: "{node_id}" (already defined as {seen_ids[node_id]})',
                    node_id=node_id,
                    file=file,
                    kind=kind,
                )

            node, deferred = _build_node(kind, node_id, raw, pools, file)
            pool[node_id] = node
            seen_ids[node_id] = kind
            pending.extend(deferred)

        pools[kind] = pool

        # Second pass for relations into the kind that just completed.
        still_pending: list[tuple[PlanNode, Relation, list[str]]] = []
        for node, relation, ids in pending:
            if relation.target != kind:
                still_pending.append((node, relation, ids))
                continue
            resolved = _resolve(node, relation, ids, pool, file)
            _link(node, relation, resolved)
        pending = still_pending

    return [node for kind in ALL_KINDS for node in pools[kind].values()]


def _build_node(
    kind: NodeKind,
    node_id: str,
    raw: Any,
    pools: dict[NodeKind, dict[str, PlanNode]],
    file: Optional[str],
) -> tuple[PlanNode, list[tuple[PlanNode, Relation, list[str]]]]:
    cls = NODE_CLASSES[kind]
    relations = RELATIONS[kind]
    scalars = SCALAR_FIELDS.get(kind, {})

    # Leaf kinds may be given as a bare title.
    if isinstance(raw, str) and not relations:
        raw = {"title": raw}
    if not isinstance(raw, dict):
        raise PlanBuildError(
            code="E_INVALID_TYPE",
            message=f"{cls.__name__} definition must be a mapping",
            node_id=node_id,
            file=file,
            kind=kind,
        )

    allowed = {"title"} | set(scalars) | {r.field for r in relations}
    for key in raw:
        if key not in allowed:
            raise PlanBuildError(
                code="E_UNKNOWN_FIELD",
                message=f"{cls.__name__} has no field {key!r} (allowed: {', '.join(sorted(allowed))})",
                node_id=node_id,
                file=file,
                kind=kind,
                field=str(key),
            )

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise PlanBuildError(
            code="E_REQUIRED_FIELD",
            message="title is required and must be a non-empty string",
            node_id=node_id,
            file=file,
            kind=kind,
            field="title",
        )

    kwargs: dict[str, Any] = {}
    for field, (shape, default) in scalars.items():
        kwargs[field] = _scalar(kind, node_id, field, shape, raw.get(field), default, file)

    deferred: list[tuple[Relation, list[str]]] = []
    for relation in relations:
        ids = _ref_ids(kind, node_id, relation, raw.get(relation.field), file)
        if _is_deferred(relation):
            deferred.append((relation, ids))
            continue
        resolved = _resolve_ids(kind, node_id, relation, ids, pools[relation.target], file)
        kwargs[relation.field] = resolved if relation.many else (resolved[0] if resolved else None)

    node = cls(id=node_id, title=title, **kwargs)
    return node, [(node, relation, ids) for relation, ids in deferred if ids]


def _is_deferred(relation: Relation) -> bool:
    return _ORDER[relation.target] >= _ORDER[relation.kind]


def _ref_ids(
    kind: NodeKind, node_id: str, relation: Relation, value: Any, file: Optional[str]
) -> list[str]:
    if relation.many:
        if value is None:
            return []
        if isinstance(value, list) and all(isinstance(x, str) for x in value):
            return list(value)
        raise PlanBuildError(
            code="E_INVALID_TYPE",
            message=f"{relation.field} must be an array of node ids",
            node_id=node_id,
            file=file,
            kind=kind,
            field=relation.field,
        )

    if value is None:
        if (kind, relation.field) in REQUIRED_RELATIONS:
            raise PlanBuildError(
                code="E_REQUIRED_FIELD",
                message=f"{relation.field} is required and must reference one {_label(relation.target)}",
                node_id=node_id,
                file=file,
                kind=kind,
                field=relation.field,
                expected_kind=relation.target,
            )
        return []
    if isinstance(value, str):
        return [value]
    raise PlanBuildError(
        code="E_INVALID_TYPE",
        message=f"{relation.field} must be a single node id",
        node_id=node_id,
        file=file,
        kind=kind,
        field=relation.field,
    )


def _resolve_ids(
    kind: NodeKind,
    node_id: str,
    relation: Relation,
    ids: list[str],
    pool: dict[str, PlanNode],
    file: Optional[str],
) -> tuple[PlanNode, ...]:
    out: list[PlanNode] = []
    for ref in ids:
        target = pool.get(ref)
        if target is None:
            raise PlanBuildError(
                code="E_UNKNOWN_REFERENCE",
                message=(
                    f'{NODE_CLASSES[kind].__name__} "{node_id}" references unknown '
                    f'{_label(relation.target)} "{ref}" in {relation.field}'
                ),
                node_id=node_id,
                file=file,
                kind=kind,
                field=relation.field,
                reference=ref,
                expected_kind=relation.target,
            )
        out.append(target)
    return tuple(out)


def _resolve(
    node: PlanNode,
    relation: Relation,
    ids: list[str],
    pool: dict[str, PlanNode],
    file: Optional[str],
) -> tuple[PlanNode, ...]:
    return _resolve_ids(node.kind, node.id, relation, ids, pool, file)


def _link(node: PlanNode, relation: Relation, resolved: tuple[PlanNode, ...]) -> None:
    # Nodes are frozen; deferred relations are set exactly once here, before
    # build_graph returns the graph.
    value: Any = resolved if relation.many else (resolved[0] if resolved else None)
    object.__setattr__(node, relation.field, value)


def _scalar(
    kind: NodeKind,
    node_id: str,
    field: str,
    shape: str,
    value: Any,
    default: Any,
    file: Optional[str],
) -> Any:
    if value is None:
        if default is ...:
            raise PlanBuildError(
                code="E_REQUIRED_FIELD",
                message=f"{field} is required",
                node_id=node_id,
                file=file,
                kind=kind,
                field=field,
            )
        return default

    if shape == "timelines":
        return _timelines(kind, node_id, value, file)

    # YAML reads an unquoted 2026-01-15 as a date.
    if shape == "date" and isinstance(value, datetime.date):
        return value.isoformat()

    ok = {
        "str": isinstance(value, str),
        "date": isinstance(value, str),
        "int": isinstance(value, int) and not isinstance(value, bool),
        "number": isinstance(value, (int, float)) and not isinstance(value, bool),
        "str_list": isinstance(value, list) and all(isinstance(x, str) for x in value),
    }[shape]
    if not ok:
        expected = {
            "str": "a string",
            "date": "a date or a string",
            "int": "an integer",
            "number": "a number",
            "str_list": "an array of strings",
        }[shape]
        raise PlanBuildError(
            code="E_INVALID_TYPE",
            message=f"{field} must be {expected}",
            node_id=node_id,
            file=file,
            kind=kind,
            field=field,
        )
    return tuple(value) if shape == "str_list" else value


def _timelines(kind: NodeKind, node_id: str, value: Any, file: Optional[str]) -> Timelines:
    if not isinstance(value, dict):
        raise PlanBuildError(
            code="E_INVALID_TYPE",
            message=f"timelines must map each of {', '.join(TIMELINE_VARIANTS)} to a schedule",
            node_id=node_id,
            file=file,
            kind=kind,
            field="timelines",
        )

    configs: dict[str, TimelineConfig] = {}
    for variant in TIMELINE_VARIANTS:
        raw = value.get(variant)
        path = f"timelines.{variant}"
        if not isinstance(raw, dict):
            raise PlanBuildError(
                code="E_REQUIRED_FIELD",
                message=f"{path} is required (start_month, duration_months, included)",
                node_id=node_id,
                file=file,
                kind=kind,
                field=path,
            )
        start = raw.get("start_month")
        duration = raw.get("duration_months")
        included = raw.get("included")
        for name, v in (("start_month", start), ("duration_months", duration)):
            if not isinstance(v, (int, float)) or isinstance(v, bool):
                raise PlanBuildError(
                    code="E_INVALID_TYPE",
                    message=f"{path}.{name} must be a number",
                    node_id=node_id,
                    file=file,
                    kind=kind,
                    field=f"{path}.{name}",
                )
        if not isinstance(included, bool):
            raise PlanBuildError(
                code="E_INVALID_TYPE",
                message=f"{path}.included must be a boolean",
                node_id=node_id,
                file=file,
                kind=kind,
                field=f"{path}.included",
            )
        configs[variant] = TimelineConfig(
            start_month=cast(float, start),
            duration_months=cast(float, duration),
            included=included,
        )

    return Timelines(
        expected=configs["expected"],
        aggressive=configs["aggressive"],
        speed_of_light=configs["speedOfLight"],
    )


def _label(kind: NodeKind) -> str:
    return kind.replace("-", " ")
