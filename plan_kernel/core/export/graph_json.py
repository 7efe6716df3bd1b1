from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

from plan_kernel.core.model import PlanNode, forward_edges


def graph_to_json(nodes: Sequence[PlanNode]) -> dict[str, Any]:
    """Flatten the graph for visualization: nodes plus one edge per forward reference."""
    graph_nodes = [{"id": n.id, "kind": n.kind, "title": n.title} for n in nodes]
    edges = [
        {"from": node.id, "to": target.id, "relation": relation.field}
        for node in nodes
        for relation, target in forward_edges(node)
    ]
    return {"nodes": graph_nodes, "edges": edges}


def write_graph_json(nodes: Sequence[PlanNode], path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(graph_to_json(nodes), indent=2) + "\n", encoding="utf-8")
