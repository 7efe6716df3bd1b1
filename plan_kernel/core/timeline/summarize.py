from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from plan_kernel.core.model import TIMELINE_VARIANTS, Milestone, TimelineVariant


VARIANT_NAMES: dict[TimelineVariant, str] = {
    "expected": "Expected",
    "aggressive": "Aggressive",
    "speedOfLight": "Speed of Light",
}


@dataclass(frozen=True)
class TimelineSummary:
    variant: TimelineVariant
    duration_months: float
    milestone_count: int
    total_revenue: float
    total_costs: float
    skipped: list[str]

    @property
    def name(self) -> str:
        return VARIANT_NAMES[self.variant]


def summarize_timelines(milestones: Sequence[Milestone]) -> list[TimelineSummary]:
    """At-a-glance figures per variant.

    Duration is the latest end month among included milestones (0 when none are
    included); revenue and costs sum over included milestones.
    """
    out: list[TimelineSummary] = []
    for variant in TIMELINE_VARIANTS:
        included = [m for m in milestones if m.timelines.for_variant(variant).included]
        duration = max((m.timelines.for_variant(variant).end_month for m in included), default=0)
        out.append(
            TimelineSummary(
                variant=variant,
                duration_months=duration,
                milestone_count=len(included),
                total_revenue=sum(m.expected_revenue for m in included),
                total_costs=sum(m.expected_costs for m in included),
                skipped=[m.id for m in milestones if not m.timelines.for_variant(variant).included],
            )
        )
    return out


def schedule(milestones: Sequence[Milestone], variant: TimelineVariant) -> list[Milestone]:
    """Included milestones of one variant ordered by start month."""
    included = [m for m in milestones if m.timelines.for_variant(variant).included]
    return sorted(included, key=lambda m: m.timelines.for_variant(variant).start_month)
