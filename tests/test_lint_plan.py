from pathlib import Path

from plan_kernel.core.build.build_graph import build_graph
from plan_kernel.core.io.load_plan import load_definition
from plan_kernel.core.lint.lint_plan import lint_plan

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _tl(start, duration):
    return {"start_month": start, "duration_months": duration, "included": True}


def _timelines(start=0):
    return {"expected": _tl(start, 1), "aggressive": _tl(start, 1), "speedOfLight": _tl(start, 1)}


def test_lint_basic_plan_is_clean():
    nodes = build_graph(load_definition(str(EXAMPLES / "basic-plan.yaml")))
    assert lint_plan(nodes) == []


def test_lint_findings_example():
    nodes = build_graph(load_definition(str(EXAMPLES / "lint-findings.yaml")))
    errors = lint_plan(nodes)
    by_code = {}
    for e in errors:
        by_code.setdefault(e.code, []).append(e)

    assert set(by_code) == {"L_CYCLE_DETECTED", "L_UNREFERENCED_NODE", "L_GATE_LINK_ASYMMETRY"}

    (cycle,) = by_code["L_CYCLE_DETECTED"]
    assert cycle.message == "depends_on_milestones cycle detected: alpha -> beta -> alpha"

    (unused,) = by_code["L_UNREFERENCED_NODE"]
    assert unused.node_id == "unused-primitive"
    assert unused.message == "primitive is not referenced by any other node"

    (gate,) = by_code["L_GATE_LINK_ASYMMETRY"]
    assert gate.node_id == "gate-a"
    assert '"gate-b"' in gate.message
    assert str(gate).startswith("[gate-a] ")


def test_lint_self_reference():
    nodes = build_graph(
        {"milestones": {"m": {"title": "M", "depends_on_milestones": ["m"], "timelines": _timelines()}}}
    )
    errors = lint_plan(nodes)
    assert [(e.code, e.node_id) for e in errors] == [("L_SELF_REFERENCE", "m")]


def test_lint_repository_upstream_cycle():
    nodes = build_graph(
        {
            "repositories": {
                "a": {"title": "A", "repo_type": "fork", "upstream": "b"},
                "b": {"title": "B", "repo_type": "fork", "upstream": "a"},
            }
        }
    )
    messages = [e.message for e in lint_plan(nodes) if e.code == "L_CYCLE_DETECTED"]
    assert messages == ["upstream cycle detected: a -> b -> a"]


def test_lint_blocked_by_without_unlocks():
    nodes = build_graph(
        {
            "action_gates": {
                "a": {"title": "A", "action": "A", "pass_criteria": ["x"]},
                "b": {"title": "B", "action": "B", "pass_criteria": ["y"], "blocked_by": ["a"]},
            }
        }
    )
    errors = lint_plan(nodes)
    assert [(e.code, e.node_id) for e in errors] == [("L_GATE_LINK_ASYMMETRY", "b")]
    assert errors[0].message == 'blocked_by "a" but "a" does not unlock "b"'
