"""Graph export helpers for Graphviz DOT output."""

from __future__ import annotations

from pathlib import Path
from typing import List, Set

from .models import RelationshipGraph


def export_dot(graph: RelationshipGraph, output_file: Path) -> None:
    """Write *graph* as DOT: one cluster per layer, cycle members in red."""
    in_cycle: Set[str] = {path for cycle in graph.cycles for path in cycle}
    placed: Set[str] = set()

    lines = ["digraph MemoryBank {"]
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box, fontname=monospace];")

    for index, layer in enumerate(graph.layers):
        members = [f for f in layer.files if f in graph.nodes]
        if not members:
            continue
        lines.append(f"  subgraph cluster_{index} {{")
        lines.append(f'    label="{_esc(layer.name)}";')
        for path in members:
            lines.append(f"    {_node_line(path, path in in_cycle)}")
            placed.add(path)
        lines.append("  }")

    for path in graph.nodes:
        if path not in placed:
            lines.append(f"  {_node_line(path, path in in_cycle)}")

    for path, node in graph.nodes.items():
        for edge in node.dependencies:
            attrs = [f'label="{edge.strength:g}"']
            if path in in_cycle and edge.target in in_cycle:
                attrs.append("color=red")
            lines.append(f'  "{_esc(path)}" -> "{_esc(edge.target)}" [{", ".join(attrs)}];')

    lines.append("}")
    output_file.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _node_line(path: str, cyclic: bool) -> str:
    attrs: List[str] = [f'label="{_esc(path)}"']
    if cyclic:
        attrs.append("color=red")
    return f'"{_esc(path)}" [{", ".join(attrs)}];'


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
