"""Family chart rendering."""

import os
from pathlib import Path

import networkx as nx
import pydot

from church_households.graph import build_union_layout_graph, get_family_subgraph
from church_households.logger import get_logger
from church_households.models import VISITOR
from church_households.relations import HEAD_OF_FAMILY

logger = get_logger(__name__)


def build_family_dot(G: nx.DiGraph, family_id: int) -> pydot.Dot:
    """
    Lay out one family with the union-node model as a Graphviz graph.

    - Parents appear above children
    - Spouses are aligned horizontally on the same rank
    - Siblings hang from the union node of their parents
    """
    H = build_union_layout_graph(get_family_subgraph(G, family_id))

    P = pydot.Dot(graph_type="digraph")
    P.set("rankdir", "TB")
    P.set("splines", "ortho")
    P.set("nodesep", "0.4")
    P.set("ranksep", "0.6")

    spouse_pairs: list[tuple] = []

    for node, data in H.nodes(data=True):
        if data.get("node_type") == "union":
            P.add_node(
                pydot.Node(
                    str(node),
                    shape="point",
                    width="0.1",
                    height="0.1",
                    label="",
                )
            )
            spouses = data.get("spouses", ())
            if len(spouses) == 2:
                spouse_pairs.append(spouses)
            continue

        role = data.get("family_role") or ""
        label = f"{data.get('given_names', '')}\n{data.get('surname', '')}\n{role}"

        if role == HEAD_OF_FAMILY:
            fillcolor = "khaki"
        elif data.get("category") == VISITOR:
            fillcolor = "lightgray"
        else:
            fillcolor = "lightblue"

        P.add_node(
            pydot.Node(
                str(node),
                label=label,
                shape="box",
                style="rounded,filled",
                fillcolor=fillcolor,
                fontsize="10",
            )
        )

    for u, v, data in H.edges(data=True):
        if data.get("edge_type") == "spouse_to_union":
            P.add_edge(pydot.Edge(str(u), str(v), dir="none", color="darkgray"))
        elif data.get("edge_type") == "union_to_child":
            P.add_edge(pydot.Edge(str(u), str(v), color="darkgray"))

    for i, (a, b) in enumerate(spouse_pairs):
        sg = pydot.Subgraph(f"couple_{i}", rank="same")
        sg.add_node(pydot.Node(str(a)))
        sg.add_node(pydot.Node(str(b)))
        P.add_subgraph(sg)

    return P


def plot_family(G: nx.DiGraph, family_id: int, output_path: Path | None = None):
    """
    Render a family chart.

    Args:
        G: Graph from ``build_graph``
        family_id: Family to draw
        output_path: PNG/SVG/PDF destination. If None, displays interactively.
    """
    P = build_family_dot(G, family_id)

    if output_path:
        ext = output_path.suffix.lower().lstrip(".")
        if ext not in ("png", "svg", "pdf"):
            ext = "png"

        P.write(str(output_path), format=ext)
        logger.info("Family %s chart saved to %s", family_id, output_path)
    else:
        import tempfile

        import matplotlib.image as mpimg
        import matplotlib.pyplot as plt

        with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as f:
            png_path = f.name
        try:
            P.write(png_path, format="png")
            img = mpimg.imread(png_path)
        finally:
            os.unlink(png_path)

        plt.figure(figsize=(12, 9))
        plt.imshow(img)
        plt.axis("off")
        plt.tight_layout()
        plt.show()
