from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from plan_kernel.core.model import RELATIONS, PlanNode, Relation, all_relations, targets


ReverseMap = dict[PlanNode, list[PlanNode]]


@dataclass(frozen=True)
class DerivedRelations:
    """Reverse indexes, one per forward relation, keyed by reverse name.

    `maps["depended_on_by"][primitive]` lists the capabilities whose
    `depends_on` contains that primitive, in node order.
    """

    maps: dict[str, ReverseMap]

    def names(self) -> list[str]:
        return list(self.maps.keys())

    def __getitem__(self, name: str) -> ReverseMap:
        return self.maps[name]

    def get(self, name: str, node: PlanNode) -> list[PlanNode]:
        return self.maps[name].get(node, [])

    def for_node(self, node: PlanNode) -> dict[str, list[PlanNode]]:
        """Non-empty backlinks of one node, keyed by reverse name."""
        out: dict[str, list[PlanNode]] = {}
        for name, reverse in self.maps.items():
            sources = reverse.get(node)
            if sources:
                out[name] = list(sources)
        return out


def derive_relations(nodes: Sequence[PlanNode]) -> DerivedRelations:
    """Derive every reverse relation implied by the forward relations.

    Every node is a key of every map (so lookups return [] rather than miss).
    Single pass over direct forward references; nothing is followed
    transitively, so cycles need no special handling. Edges to nodes outside
    `nodes` are skipped.
    """

    relations: list[Relation] = all_relations()
    maps: dict[str, ReverseMap] = {r.reverse: {} for r in relations}
    for reverse in maps.values():
        for node in nodes:
            reverse[node] = []

    for node in nodes:
        for relation in RELATIONS[node.kind]:
            reverse = maps[relation.reverse]
            for target in targets(node, relation):
                slot = reverse.get(target)
                if slot is not None:
                    slot.append(node)

    return DerivedRelations(maps=maps)
