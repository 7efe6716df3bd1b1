from pathlib import Path

from plan_kernel.core.build.build_graph import build_graph
from plan_kernel.core.io.load_plan import load_definition
from plan_kernel.core.model import milestones_of
from plan_kernel.core.timeline.summarize import schedule, summarize_timelines

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _milestones():
    return milestones_of(build_graph(load_definition(str(EXAMPLES / "basic-plan.yaml"))))


def test_summarize_basic_plan():
    expected, aggressive, speed_of_light = summarize_timelines(_milestones())

    assert expected.name == "Expected"
    assert expected.duration_months == 20
    assert expected.milestone_count == 4
    assert expected.total_revenue == 57000
    assert expected.total_costs == 14000
    assert expected.skipped == []

    assert aggressive.duration_months == 12

    assert speed_of_light.name == "Speed of Light"
    assert speed_of_light.duration_months == 5
    assert speed_of_light.milestone_count == 3
    assert speed_of_light.total_revenue == 22000
    assert speed_of_light.skipped == ["smartbox-enterprise"]


def test_summarize_without_milestones():
    for summary in summarize_timelines([]):
        assert summary.duration_months == 0
        assert summary.milestone_count == 0


def test_schedule_orders_by_start_and_drops_skipped():
    ordered = schedule(_milestones(), "speedOfLight")
    assert [m.id for m in ordered] == ["smartbox-mvp", "smartbox-beta", "smartbox-revenue"]
