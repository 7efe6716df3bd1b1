from pathlib import Path

from plan_kernel.core.build.build_graph import build_graph
from plan_kernel.core.derive.derive_relations import derive_relations
from plan_kernel.core.io.load_plan import load_definition
from plan_kernel.core.model import RELATIONS, Capability, Primitive, all_relations, targets

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _basic():
    return build_graph(load_definition(str(EXAMPLES / "basic-plan.yaml")))


def _by_id(nodes):
    return {n.id: n for n in nodes}


def test_primitive_backlinks():
    nodes = _basic()
    by_id = _by_id(nodes)
    derived = derive_relations(nodes)
    assert derived.get("depended_on_by", by_id["snapshot-materialisation"]) == [by_id["smartbox"]]
    assert derived.get("tooling_depending_on", by_id["capability-scoped-exec"]) == [by_id["smartbox-cli"]]
    assert derived.get("mitigates", by_id["capability-scoped-exec"]) == [by_id["autonomy-blast-radius"]]


def test_every_node_is_keyed_in_every_map():
    nodes = _basic()
    derived = derive_relations(nodes)
    assert sorted(derived.names()) == sorted(r.reverse for r in all_relations())
    for name in derived.names():
        assert set(derived[name]) == set(nodes)
    # A leaf with no incoming edge of that relation still gets a list.
    assert derived.get("supersedes", _by_id(nodes)["smartbox"]) == []


def test_reverse_maps_mirror_forward_relations():
    nodes = _basic()
    derived = derive_relations(nodes)
    for node in nodes:
        for relation in RELATIONS[node.kind]:
            for target in targets(node, relation):
                assert node in derived.get(relation.reverse, target)

    for relation in all_relations():
        for target, sources in derived[relation.reverse].items():
            for source in sources:
                assert source.kind == relation.kind
                assert target in targets(source, relation)


def test_single_relations_and_self_references():
    by_id = _by_id(_basic())
    derived = derive_relations(list(by_id.values()))
    assert derived.get("provides", by_id["cloudflare"]) == [by_id["cf-workers"]]
    assert derived.get("forks", by_id["workerd"]) == [by_id["workerd-fork"]]
    assert derived.get("repo_dependents", by_id["workerd-fork"]) == [by_id["smartbox-runtime"]]
    assert derived.get("prerequisite_for", by_id["smartbox-mvp"]) == [by_id["smartbox-beta"]]
    assert derived.get("supersedes", by_id["cloudflare-first"]) == [by_id["self-host-runtime"]]
    assert derived.get("gates", by_id["first-paying-customer"]) == [by_id["smartbox-revenue"]]


def test_derive_is_idempotent():
    nodes = _basic()
    first = derive_relations(nodes)
    second = derive_relations(nodes)
    for name in first.names():
        assert first[name] == second[name]


def test_for_node_lists_only_non_empty_backlinks():
    by_id = _by_id(_basic())
    derived = derive_relations(list(by_id.values()))
    backlinks = derived.for_node(by_id["smartbox"])
    assert backlinks["enables"] == [by_id["smartboxes"]]
    assert backlinks["enables_projects"] == [by_id["co2"]]
    assert backlinks["justifies"] == [by_id["agent-native-platform"]]
    assert all(backlinks.values())
    assert derived.for_node(by_id["self-host-runtime"]) == {}


def test_edges_to_nodes_outside_the_list_are_skipped():
    outside = Primitive("p", "P")
    cap = Capability("c", "C", depends_on=(outside,))
    derived = derive_relations([cap])
    assert derived.get("depended_on_by", outside) == []
    assert derived.get("depended_on_by", cap) == []


def test_cyclic_references_derive_in_one_pass():
    nodes = build_graph(
        {
            "action_gates": {
                "a": {"title": "A", "action": "A", "pass_criteria": ["x"], "unlocks": ["b"], "blocked_by": ["b"]},
                "b": {"title": "B", "action": "B", "pass_criteria": ["y"], "unlocks": ["a"], "blocked_by": ["a"]},
            }
        }
    )
    a, b = nodes
    derived = derive_relations(nodes)
    assert derived.get("unlocked_by", a) == [b]
    assert derived.get("blocks", b) == [a]
