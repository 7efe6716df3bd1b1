from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from plan_kernel.core.config.kernel_config import DEFAULT_CONFIG, KernelConfig
from plan_kernel.core.content.content_store import ContentStore
from plan_kernel.core.errors import PlanValidationError
from plan_kernel.core.model import (
    ALL_KINDS,
    ASSUMPTION_STATUSES,
    CONSTRAINT_SEVERITIES,
    DECISION_STATUSES,
    METRIC_FREQUENCIES,
    REPO_TYPES,
    RISK_STATUSES,
    STACK_LEVELS,
    THREAT_LEVELS,
    TIMELINE_VARIANTS,
    ActionGate,
    Assumption,
    Capability,
    Competitor,
    Constraint,
    Decision,
    Diagnosis,
    GuidingPolicy,
    Milestone,
    NodeKind,
    PlanNode,
    Product,
    ProxyMetric,
    Repository,
    Risk,
    Thesis,
    milestones_of,
)


REVIEW_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

SPEED_OF_LIGHT_NODE_ID = "timeline-speedOfLight"


@dataclass(frozen=True)
class ValidationResult:
    errors: list[PlanValidationError]

    @property
    def valid(self) -> bool:
        return not self.errors


Errors = list[PlanValidationError]


def validate_plan(
    nodes: Sequence[PlanNode],
    content: ContentStore,
    *,
    config: Optional[KernelConfig] = None,
) -> ValidationResult:
    """Validate a built plan graph.

    Every check runs regardless of earlier failures so one run reports the
    complete defect list. Structural checks (duplicate ids, missing content)
    apply to every node; kind checks are dispatched through KIND_CHECKS;
    timeline checks run once over all milestones.
    """

    cfg = config or DEFAULT_CONFIG
    errors: Errors = []

    counts = Counter(n.id for n in nodes)
    for node in nodes:
        if counts[node.id] > 1:
            _err(errors, node, "E_DUPLICATE_ID", f'Duplicate node ID: "{node.id}"')

    for node in nodes:
        if not content.exists(node.kind, node.id):
            _err(
                errors,
                node,
                "E_MISSING_CONTENT",
                f"Missing content file: {content.relative_path(node.kind, node.id)}",
            )
        KIND_CHECKS[node.kind](node, errors)

    milestones = milestones_of(nodes)
    if milestones:
        validate_timelines(milestones, errors, speed_of_light_months=cfg.speed_of_light_months)

    return ValidationResult(errors=errors)


def summarize_plan(nodes: Sequence[PlanNode]) -> str:
    counts = Counter(n.kind for n in nodes)
    parts = [f"{k}={counts[k]}" for k in ALL_KINDS if counts.get(k)]
    return f"OK: {len(nodes)} nodes validated (" + ", ".join(parts) + ")"


def _err(errors: Errors, node: PlanNode, code: str, message: str) -> None:
    errors.append(PlanValidationError(code=code, message=message, node_id=node.id))


def _no_checks(node: PlanNode, errors: Errors) -> None:
    return


def _check_enum(node: PlanNode, errors: Errors, label: str, value: str, allowed: Iterable[str]) -> None:
    allowed = sorted(allowed)
    if value not in allowed:
        _err(errors, node, "E_INVALID_ENUM", f"{label} must be one of {allowed} (got {value!r})")


def _check_non_empty(node: PlanNode, errors: Errors, label: str, value: str) -> None:
    if not value.strip():
        _err(errors, node, "E_EMPTY_FIELD", f"{label} must be non-empty")


def _validate_competitor(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Competitor)
    _check_enum(node, errors, "Competitor threat_level", node.threat_level, THREAT_LEVELS)


def _validate_risk(node: PlanNode, errors: Errors) -> None:
    # mitigated_by may be empty.
    assert isinstance(node, Risk)
    _check_enum(node, errors, "Risk status", node.status, RISK_STATUSES)


def _validate_capability(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Capability)
    if not node.depends_on:
        _err(errors, node, "E_EMPTY_RELATION", "Capability must depend on at least one primitive")


def _validate_product(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Product)
    if not node.enabled_by:
        _err(errors, node, "E_EMPTY_RELATION", "Product must be enabled by at least one capability")


def _validate_thesis(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Thesis)
    if not node.justified_by:
        _err(errors, node, "E_EMPTY_RELATION", "Thesis must be justified by at least one capability")


def _validate_milestone(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Milestone)
    if node.expected_revenue < 0:
        _err(errors, node, "E_NEGATIVE_VALUE", "Milestone expected_revenue must be non-negative")
    if node.expected_costs < 0:
        _err(errors, node, "E_NEGATIVE_VALUE", "Milestone expected_costs must be non-negative")

    for variant in TIMELINE_VARIANTS:
        config = node.timelines.for_variant(variant)
        if config.start_month < 0:
            _err(
                errors,
                node,
                "E_NEGATIVE_VALUE",
                f'Milestone timeline "{variant}" has invalid start_month (must be >= 0)',
            )
        if config.duration_months < 0:
            _err(
                errors,
                node,
                "E_NEGATIVE_VALUE",
                f'Milestone timeline "{variant}" has invalid duration_months (must be >= 0)',
            )


def _validate_repository(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Repository)
    if node.stack_level not in STACK_LEVELS:
        _err(
            errors,
            node,
            "E_OUT_OF_RANGE",
            f"Repository stack_level must be between 0 and 4 (got {node.stack_level})",
        )
    _check_enum(node, errors, "Repository repo_type", node.repo_type, REPO_TYPES)
    if node.repo_type == "fork" and node.upstream is None:
        _err(errors, node, "E_FORK_UPSTREAM", "Fork repository must specify an upstream repository")
    if node.repo_type != "fork" and node.upstream is not None:
        _err(
            errors,
            node,
            "E_FORK_UPSTREAM",
            f'Only fork repositories may specify an upstream repository (repo_type is "{node.repo_type}")',
        )
    if not node.url.startswith("https://"):
        _err(errors, node, "E_INVALID_URL", f"Repository url must start with https:// (got {node.url!r})")


def _validate_constraint(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Constraint)
    _check_enum(node, errors, "Constraint severity", node.severity, CONSTRAINT_SEVERITIES)


def _validate_proxy_metric(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, ProxyMetric)
    if node.current_value < 0:
        _err(errors, node, "E_NEGATIVE_VALUE", "Proxy metric current_value must be non-negative")
    if node.target_value < 0:
        _err(errors, node, "E_NEGATIVE_VALUE", "Proxy metric target_value must be non-negative")
    if node.current_value == node.target_value:
        _err(
            errors,
            node,
            "E_UNCHANGED_TARGET",
            f"Proxy metric target_value must differ from current_value (both are {node.current_value})",
        )
    _check_enum(node, errors, "Proxy metric frequency", node.frequency, METRIC_FREQUENCIES)


def _validate_diagnosis(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Diagnosis)
    if not node.evidenced_by:
        _err(errors, node, "E_EMPTY_RELATION", "Diagnosis must be evidenced by at least one risk")


def _validate_action_gate(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, ActionGate)
    _check_non_empty(node, errors, "Action gate action", node.action)
    if not node.pass_criteria:
        _err(errors, node, "E_EMPTY_LIST", "Action gate must have at least one pass criterion")


def _validate_guiding_policy(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, GuidingPolicy)
    if not node.leverages_competencies:
        _err(errors, node, "E_EMPTY_RELATION", "Guiding policy must leverage at least one competency")


def _validate_assumption(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Assumption)
    _check_non_empty(node, errors, "Assumption statement", node.statement)
    _check_non_empty(node, errors, "Assumption test_method", node.test_method)
    if not node.validation_criteria:
        _err(errors, node, "E_EMPTY_LIST", "Assumption must have at least one validation criterion")
    if not node.invalidation_criteria:
        _err(errors, node, "E_EMPTY_LIST", "Assumption must have at least one invalidation criterion")
    if not 0 <= node.confidence <= 100:
        _err(
            errors,
            node,
            "E_OUT_OF_RANGE",
            f"Assumption confidence must be between 0 and 100 (got {node.confidence})",
        )
    _check_enum(node, errors, "Assumption status", node.status, ASSUMPTION_STATUSES)
    if node.status in {"validated", "invalidated"} and not node.current_evidence:
        _err(
            errors,
            node,
            "E_MISSING_EVIDENCE",
            f'Assumption with status "{node.status}" must have supporting evidence in current_evidence',
        )


def _validate_decision(node: PlanNode, errors: Errors) -> None:
    assert isinstance(node, Decision)
    _check_non_empty(node, errors, "Decision context", node.context)
    _check_non_empty(node, errors, "Decision choice", node.choice)
    _check_non_empty(node, errors, "Decision rationale", node.rationale)
    _check_enum(node, errors, "Decision status", node.status, DECISION_STATUSES)
    if node.status == "active" and not node.reversal_triggers:
        _err(errors, node, "E_EMPTY_LIST", "Active decision must have at least one reversal trigger")
    if not node.tradeoffs:
        _err(errors, node, "E_EMPTY_LIST", "Decision must document at least one tradeoff")
    if not REVIEW_DATE_RE.fullmatch(node.review_date):
        _err(
            errors,
            node,
            "E_INVALID_DATE",
            f"Decision review_date must match YYYY-MM-DD (got {node.review_date!r})",
        )
    if node.status == "superseded" and node.superseded_by is None:
        _err(errors, node, "E_MISSING_SUPERSEDED_BY", "Superseded decision must specify superseded_by")


KIND_CHECKS: dict[NodeKind, Callable[[PlanNode, Errors], None]] = {
    "primitive": _no_checks,
    "supplier": _no_checks,
    "customer": _no_checks,
    "competitor": _validate_competitor,
    "supplier-primitive": _no_checks,
    "tooling": _no_checks,
    "risk": _validate_risk,
    "capability": _validate_capability,
    "product": _validate_product,
    "project": _no_checks,
    "milestone": _validate_milestone,
    "thesis": _validate_thesis,
    "repository": _validate_repository,
    "constraint": _validate_constraint,
    "proxy-metric": _validate_proxy_metric,
    "competency": _no_checks,
    "diagnosis": _validate_diagnosis,
    "action-gate": _validate_action_gate,
    "guiding-policy": _validate_guiding_policy,
    "assumption": _validate_assumption,
    "decision": _validate_decision,
}


def validate_timelines(
    milestones: Sequence[Milestone],
    errors: Errors,
    *,
    speed_of_light_months: int = 12,
) -> None:
    """Cross-milestone checks, per timeline variant.

    1. speedOfLight must finish within `speed_of_light_months` (one graph-level error).
    2. A milestone included in a variant may not depend on a skipped milestone.
    3. An included dependency must end no later than its dependent starts.
    """
    for variant in TIMELINE_VARIANTS:
        if variant == "speedOfLight":
            included = [m for m in milestones if m.timelines.speed_of_light.included]
            if included:
                max_end = max(m.timelines.speed_of_light.end_month for m in included)
                if max_end > speed_of_light_months:
                    errors.append(
                        PlanValidationError(
                            code="E_TIMELINE_DEADLINE",
                            message=(
                                f"Speed of Light timeline exceeds {speed_of_light_months} months "
                                f"(ends at month {_fmt(max_end)})"
                            ),
                            node_id=SPEED_OF_LIGHT_NODE_ID,
                        )
                    )

        for milestone in milestones:
            config = milestone.timelines.for_variant(variant)
            if not config.included:
                continue
            for dep in milestone.depends_on_milestones:
                if not dep.timelines.for_variant(variant).included:
                    _err(
                        errors,
                        milestone,
                        "E_TIMELINE_SKIPPED_DEPENDENCY",
                        f'Milestone "{milestone.id}" is included in {variant} timeline '
                        f'but depends on skipped milestone "{dep.id}"',
                    )

        for milestone in milestones:
            config = milestone.timelines.for_variant(variant)
            if not config.included:
                continue
            for dep in milestone.depends_on_milestones:
                dep_config = dep.timelines.for_variant(variant)
                if not dep_config.included:
                    continue
                if dep_config.end_month > config.start_month:
                    _err(
                        errors,
                        milestone,
                        "E_TIMELINE_ORDER",
                        f'Milestone "{milestone.id}" starts at month {_fmt(config.start_month)} '
                        f'but dependency "{dep.id}" ends at month {_fmt(dep_config.end_month)} '
                        f"in {variant} timeline",
                    )


def _fmt(month: float) -> str:
    return str(int(month)) if float(month).is_integer() else str(month)
