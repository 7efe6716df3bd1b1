from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterable, Iterator, Literal, Optional, Union


NodeKind = Literal[
    "primitive",
    "supplier",
    "customer",
    "competitor",
    "supplier-primitive",
    "tooling",
    "risk",
    "capability",
    "product",
    "project",
    "milestone",
    "thesis",
    "repository",
    "constraint",
    "proxy-metric",
    "competency",
    "diagnosis",
    "action-gate",
    "guiding-policy",
    "assumption",
    "decision",
]

# Build order; also the grouping order of the built node list.
ALL_KINDS: tuple[NodeKind, ...] = (
    "primitive",
    "supplier",
    "customer",
    "competitor",
    "supplier-primitive",
    "tooling",
    "risk",
    "capability",
    "product",
    "project",
    "milestone",
    "thesis",
    "repository",
    "constraint",
    "proxy-metric",
    "competency",
    "diagnosis",
    "action-gate",
    "guiding-policy",
    "assumption",
    "decision",
)

TimelineVariant = Literal["expected", "aggressive", "speedOfLight"]
TIMELINE_VARIANTS: tuple[TimelineVariant, ...] = ("expected", "aggressive", "speedOfLight")

ThreatLevel = Literal["none", "low", "medium", "high"]
RiskStatus = Literal["active", "mitigated", "accepted"]
RepoType = Literal["owned", "fork", "dependency"]
ConstraintSeverity = Literal["hard", "soft"]
MetricFrequency = Literal["daily", "weekly", "monthly", "quarterly"]
AssumptionStatus = Literal["untested", "testing", "validated", "invalidated"]
DecisionStatus = Literal["proposed", "active", "superseded", "reversed"]

THREAT_LEVELS: set[str] = {"none", "low", "medium", "high"}
RISK_STATUSES: set[str] = {"active", "mitigated", "accepted"}
REPO_TYPES: set[str] = {"owned", "fork", "dependency"}
CONSTRAINT_SEVERITIES: set[str] = {"hard", "soft"}
METRIC_FREQUENCIES: set[str] = {"daily", "weekly", "monthly", "quarterly"}
ASSUMPTION_STATUSES: set[str] = {"untested", "testing", "validated", "invalidated"}
DECISION_STATUSES: set[str] = {"proposed", "active", "superseded", "reversed"}
STACK_LEVELS: range = range(0, 5)


# Nodes hash and compare by identity (eq=False): a node referenced from many
# places is one canonical instance, and reverse maps are keyed by it.
@dataclass(frozen=True, eq=False)
class PlanNode:
    id: str
    title: str

    kind: ClassVar[NodeKind]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


@dataclass(frozen=True, eq=False)
class Primitive(PlanNode):
    """Foundational internal capability unit."""

    kind: ClassVar[NodeKind] = "primitive"


@dataclass(frozen=True, eq=False)
class Supplier(PlanNode):
    """External dependency provider."""

    kind: ClassVar[NodeKind] = "supplier"


@dataclass(frozen=True, eq=False)
class Customer(PlanNode):
    """Market segment or persona that products target."""

    kind: ClassVar[NodeKind] = "customer"


@dataclass(frozen=True, eq=False)
class Competitor(PlanNode):
    kind: ClassVar[NodeKind] = "competitor"

    threat_level: str = "low"


@dataclass(frozen=True, eq=False)
class SupplierPrimitive(PlanNode):
    """A concrete capability purchased from a supplier."""

    kind: ClassVar[NodeKind] = "supplier-primitive"

    supplier: Optional[Supplier] = None


@dataclass(frozen=True, eq=False)
class Tooling(PlanNode):
    """Development or operational tool."""

    kind: ClassVar[NodeKind] = "tooling"

    depends_on: tuple[Primitive, ...] = ()
    supplier_primitives: tuple[SupplierPrimitive, ...] = ()


@dataclass(frozen=True, eq=False)
class Risk(PlanNode):
    kind: ClassVar[NodeKind] = "risk"

    mitigated_by: tuple[Primitive, ...] = ()
    status: str = "active"


@dataclass(frozen=True, eq=False)
class Capability(PlanNode):
    kind: ClassVar[NodeKind] = "capability"

    depends_on: tuple[Primitive, ...] = ()
    risks: tuple[Risk, ...] = ()
    suppliers: tuple[Supplier, ...] = ()
    supplier_primitives: tuple[SupplierPrimitive, ...] = ()
    tooling: tuple[Tooling, ...] = ()


@dataclass(frozen=True, eq=False)
class Product(PlanNode):
    kind: ClassVar[NodeKind] = "product"

    enabled_by: tuple[Capability, ...] = ()
    customers: tuple[Customer, ...] = ()
    competitors: tuple[Competitor, ...] = ()
    tooling: tuple[Tooling, ...] = ()


@dataclass(frozen=True, eq=False)
class Project(PlanNode):
    """A customer project built on the platform capabilities."""

    kind: ClassVar[NodeKind] = "project"

    enabled_by: tuple[Capability, ...] = ()
    tooling: tuple[Tooling, ...] = ()


@dataclass(frozen=True)
class TimelineConfig:
    start_month: float
    duration_months: float
    included: bool

    @property
    def end_month(self) -> float:
        return self.start_month + self.duration_months


@dataclass(frozen=True)
class Timelines:
    expected: TimelineConfig
    aggressive: TimelineConfig
    speed_of_light: TimelineConfig

    def for_variant(self, variant: TimelineVariant) -> TimelineConfig:
        if variant == "expected":
            return self.expected
        if variant == "aggressive":
            return self.aggressive
        if variant == "speedOfLight":
            return self.speed_of_light
        raise KeyError(variant)


_NOT_SCHEDULED = TimelineConfig(start_month=0, duration_months=0, included=False)


@dataclass(frozen=True, eq=False)
class Milestone(PlanNode):
    """One work item scheduled in three parallel timeline variants."""

    kind: ClassVar[NodeKind] = "milestone"

    expected_revenue: float = 0
    expected_costs: float = 0
    timelines: Timelines = Timelines(_NOT_SCHEDULED, _NOT_SCHEDULED, _NOT_SCHEDULED)
    depends_on_milestones: tuple[Milestone, ...] = ()
    depends_on_capabilities: tuple[Capability, ...] = ()
    products: tuple[Product, ...] = ()
    gated_by: tuple[ActionGate, ...] = ()


@dataclass(frozen=True, eq=False)
class Thesis(PlanNode):
    kind: ClassVar[NodeKind] = "thesis"

    justified_by: tuple[Capability, ...] = ()


@dataclass(frozen=True, eq=False)
class Repository(PlanNode):
    kind: ClassVar[NodeKind] = "repository"

    url: str = ""
    stack_level: int = 0
    repo_type: str = "owned"
    language: str = ""
    depends_on: tuple[Repository, ...] = ()
    upstream: Optional[Repository] = None
    products: tuple[Product, ...] = ()
    capabilities: tuple[Capability, ...] = ()


@dataclass(frozen=True, eq=False)
class Constraint(PlanNode):
    kind: ClassVar[NodeKind] = "constraint"

    severity: str = "soft"
    category: str = ""


@dataclass(frozen=True, eq=False)
class ProxyMetric(PlanNode):
    """Leading indicator tracked by action gates."""

    kind: ClassVar[NodeKind] = "proxy-metric"

    current_value: float = 0
    target_value: float = 0
    frequency: str = "monthly"
    unit: str = ""


@dataclass(frozen=True, eq=False)
class Competency(PlanNode):
    kind: ClassVar[NodeKind] = "competency"

    evidenced_by: tuple[Repository, ...] = ()


@dataclass(frozen=True, eq=False)
class Diagnosis(PlanNode):
    kind: ClassVar[NodeKind] = "diagnosis"

    evidenced_by: tuple[Risk, ...] = ()
    constrained_by: tuple[Constraint, ...] = ()


@dataclass(frozen=True, eq=False)
class ActionGate(PlanNode):
    """Pass/fail checkpoint with explicit criteria."""

    kind: ClassVar[NodeKind] = "action-gate"

    action: str = ""
    pass_criteria: tuple[str, ...] = ()
    proxy_metrics: tuple[ProxyMetric, ...] = ()
    blocked_by: tuple[ActionGate, ...] = ()
    unlocks: tuple[ActionGate, ...] = ()


@dataclass(frozen=True, eq=False)
class GuidingPolicy(PlanNode):
    kind: ClassVar[NodeKind] = "guiding-policy"

    addresses_diagnosis: Optional[Diagnosis] = None
    leverages_competencies: tuple[Competency, ...] = ()
    works_around_constraints: tuple[Constraint, ...] = ()


@dataclass(frozen=True, eq=False)
class Assumption(PlanNode):
    kind: ClassVar[NodeKind] = "assumption"

    statement: str = ""
    test_method: str = ""
    validation_criteria: tuple[str, ...] = ()
    invalidation_criteria: tuple[str, ...] = ()
    current_evidence: tuple[str, ...] = ()
    confidence: float = 0
    status: str = "untested"
    dependent_products: tuple[Product, ...] = ()
    dependent_milestones: tuple[Milestone, ...] = ()
    related_risks: tuple[Risk, ...] = ()


@dataclass(frozen=True, eq=False)
class Decision(PlanNode):
    kind: ClassVar[NodeKind] = "decision"

    context: str = ""
    choice: str = ""
    rationale: str = ""
    alternatives: tuple[str, ...] = ()
    tradeoffs: tuple[str, ...] = ()
    reversal_triggers: tuple[str, ...] = ()
    review_date: str = ""
    status: str = "proposed"
    depends_on_assumptions: tuple[Assumption, ...] = ()
    affected_products: tuple[Product, ...] = ()
    affected_milestones: tuple[Milestone, ...] = ()
    superseded_by: Optional[Decision] = None


NODE_CLASSES: dict[NodeKind, type[PlanNode]] = {
    "primitive": Primitive,
    "supplier": Supplier,
    "customer": Customer,
    "competitor": Competitor,
    "supplier-primitive": SupplierPrimitive,
    "tooling": Tooling,
    "risk": Risk,
    "capability": Capability,
    "product": Product,
    "project": Project,
    "milestone": Milestone,
    "thesis": Thesis,
    "repository": Repository,
    "constraint": Constraint,
    "proxy-metric": ProxyMetric,
    "competency": Competency,
    "diagnosis": Diagnosis,
    "action-gate": ActionGate,
    "guiding-policy": GuidingPolicy,
    "assumption": Assumption,
    "decision": Decision,
}


@dataclass(frozen=True)
class Relation:
    """One forward relation: `kind.field` points at nodes of `target`.

    `reverse` names the derived map holding the inverse edge. Single relations
    (`many=False`) hold a node or None instead of a tuple.
    """

    kind: NodeKind
    field: str
    target: NodeKind
    reverse: str
    many: bool = True

    @property
    def is_self_reference(self) -> bool:
        return self.kind == self.target


def _rel(kind: NodeKind, field: str, target: NodeKind, reverse: str, many: bool = True) -> Relation:
    return Relation(kind=kind, field=field, target=target, reverse=reverse, many=many)


RELATIONS: dict[NodeKind, tuple[Relation, ...]] = {
    "primitive": (),
    "supplier": (),
    "customer": (),
    "competitor": (),
    "supplier-primitive": (
        _rel("supplier-primitive", "supplier", "supplier", "provides", many=False),
    ),
    "tooling": (
        _rel("tooling", "depends_on", "primitive", "tooling_depending_on"),
        _rel("tooling", "supplier_primitives", "supplier-primitive", "tooling_using"),
    ),
    "risk": (
        _rel("risk", "mitigated_by", "primitive", "mitigates"),
    ),
    "capability": (
        _rel("capability", "depends_on", "primitive", "depended_on_by"),
        _rel("capability", "risks", "risk", "risks_for"),
        _rel("capability", "suppliers", "supplier", "supplies"),
        _rel("capability", "supplier_primitives", "supplier-primitive", "capabilities_using"),
        _rel("capability", "tooling", "tooling", "supports_capabilities"),
    ),
    "product": (
        _rel("product", "enabled_by", "capability", "enables"),
        _rel("product", "customers", "customer", "targeted_by"),
        _rel("product", "competitors", "competitor", "competes_with"),
        _rel("product", "tooling", "tooling", "supports_products"),
    ),
    "project": (
        _rel("project", "enabled_by", "capability", "enables_projects"),
        _rel("project", "tooling", "tooling", "supports_projects"),
    ),
    "milestone": (
        _rel("milestone", "depends_on_milestones", "milestone", "prerequisite_for"),
        _rel("milestone", "depends_on_capabilities", "capability", "required_by_milestones"),
        _rel("milestone", "products", "product", "advanced_by"),
        _rel("milestone", "gated_by", "action-gate", "gates"),
    ),
    "thesis": (
        _rel("thesis", "justified_by", "capability", "justifies"),
    ),
    "repository": (
        _rel("repository", "depends_on", "repository", "repo_dependents"),
        _rel("repository", "upstream", "repository", "forks", many=False),
        _rel("repository", "products", "product", "product_repositories"),
        _rel("repository", "capabilities", "capability", "capability_repositories"),
    ),
    "constraint": (),
    "proxy-metric": (),
    "competency": (
        _rel("competency", "evidenced_by", "repository", "evidences_competencies"),
    ),
    "diagnosis": (
        _rel("diagnosis", "evidenced_by", "risk", "evidences_diagnoses"),
        _rel("diagnosis", "constrained_by", "constraint", "constrains"),
    ),
    "action-gate": (
        _rel("action-gate", "proxy_metrics", "proxy-metric", "measures_gates"),
        _rel("action-gate", "blocked_by", "action-gate", "blocks"),
        _rel("action-gate", "unlocks", "action-gate", "unlocked_by"),
    ),
    "guiding-policy": (
        _rel("guiding-policy", "addresses_diagnosis", "diagnosis", "addressed_by", many=False),
        _rel("guiding-policy", "leverages_competencies", "competency", "leveraged_by"),
        _rel("guiding-policy", "works_around_constraints", "constraint", "worked_around_by"),
    ),
    "assumption": (
        _rel("assumption", "dependent_products", "product", "product_assumptions"),
        _rel("assumption", "dependent_milestones", "milestone", "milestone_assumptions"),
        _rel("assumption", "related_risks", "risk", "risk_assumptions"),
    ),
    "decision": (
        _rel("decision", "depends_on_assumptions", "assumption", "decisions_relying_on"),
        _rel("decision", "affected_products", "product", "product_decisions"),
        _rel("decision", "affected_milestones", "milestone", "milestone_decisions"),
        _rel("decision", "superseded_by", "decision", "supersedes", many=False),
    ),
}


def all_relations() -> list[Relation]:
    return [r for kind in ALL_KINDS for r in RELATIONS[kind]]


def targets(node: PlanNode, relation: Relation) -> tuple[PlanNode, ...]:
    """Nodes referenced by `node` through one relation (single relations yield 0 or 1)."""
    value: Union[PlanNode, tuple[PlanNode, ...], None] = getattr(node, relation.field)
    if relation.many:
        return tuple(value or ())  # type: ignore[arg-type]
    return () if value is None else (value,)  # type: ignore[return-value]


def forward_edges(node: PlanNode) -> Iterator[tuple[Relation, PlanNode]]:
    for relation in RELATIONS[node.kind]:
        for target in targets(node, relation):
            yield relation, target


def nodes_of_kind(nodes: Iterable[PlanNode], kind: NodeKind) -> list[PlanNode]:
    return [n for n in nodes if n.kind == kind]


def milestones_of(nodes: Iterable[PlanNode]) -> list[Milestone]:
    return [n for n in nodes if isinstance(n, Milestone)]
