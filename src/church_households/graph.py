"""NetworkX views of the people and relationship ledger."""

import itertools
import sqlite3

import networkx as nx
from networkx.utils import UnionFind

from church_households.exceptions import UnknownRelationKindError
from church_households.relations import RelationKind, implies_shared_household


def build_graph(conn: sqlite3.Connection) -> nx.DiGraph:
    """Build a directed graph: one node per person, one edge per assertion (person1 -> person2)."""
    G = nx.DiGraph()
    cursor = conn.cursor()

    # Add nodes (persons)
    # Note: use 'person_name' instead of 'name' to avoid conflict with pydot
    cursor.execute(
        "SELECT id, given_names, surname, category, family_id, family_role FROM person"
    )
    for row in cursor.fetchall():
        G.add_node(
            row[0],
            person_name=f"{row[1]} {row[2]}",
            given_names=row[1],
            surname=row[2],
            category=row[3],
            family_id=row[4],
            family_role=row[5],
        )

    # Add edges (relationships)
    cursor.execute(
        """
        SELECT id, person1_id, person2_id, kind, inverse_kind, context_family_id
        FROM relationship
        """
    )
    for row in cursor.fetchall():
        G.add_edge(
            row[1],
            row[2],
            relationship_id=row[0],
            relationship_type=row[3],
            inverse_type=row[4],
            context_family_id=row[5],
        )

    return G


def edge_kind(data: dict) -> RelationKind | None:
    try:
        return RelationKind.parse(data.get("relationship_type", ""))
    except UnknownRelationKindError:
        return None


def household_edges(G: nx.DiGraph) -> list[tuple[int, int]]:
    """Edges whose relationship kind means both people share a household."""
    edges = []
    for u, v, data in G.edges(data=True):
        kind = edge_kind(data)
        if kind is not None and implies_shared_household(kind):
            edges.append((u, v))
    return edges


def household_groups(G: nx.DiGraph, category: str | None = None) -> list[set[int]]:
    """
    Sets of people that the ledger says must live in one family.

    Groups are the connected components of the shared-household edges,
    optionally restricted to people of ``category``. Singletons are omitted.
    """
    uf = UnionFind()
    for u, v in household_edges(G):
        if category is not None and (
            G.nodes[u].get("category") != category or G.nodes[v].get("category") != category
        ):
            continue
        uf.union(u, v)

    groups = [set(group) for group in uf.to_sets() if len(group) > 1]
    return sorted(groups, key=min)


def get_family_subgraph(G: nx.DiGraph, family_id: int) -> nx.DiGraph:
    """Subgraph induced by the current members of a family."""
    members = [n for n, data in G.nodes(data=True) if data.get("family_id") == family_id]
    if not members:
        raise ValueError(f"Family ID {family_id} has no members in graph")
    return G.subgraph(members).copy()


def parent_child_pairs(G: nx.DiGraph) -> list[tuple[int, int]]:
    """(parent, child) pairs from PARENT and CHILD assertions."""
    pairs = []
    for u, v, data in G.edges(data=True):
        kind = edge_kind(data)
        if kind is RelationKind.PARENT:
            pairs.append((u, v))
        elif kind is RelationKind.CHILD:
            pairs.append((v, u))
    return pairs


def spouse_pairs(G: nx.DiGraph) -> set[tuple]:
    pairs: set[tuple] = set()
    for u, v, data in G.edges(data=True):
        if edge_kind(data) in (RelationKind.SPOUSE, RelationKind.PARTNER):
            a, b = tuple(sorted([u, v], key=str))
            pairs.add((a, b))
    return pairs


def build_union_layout_graph(G: nx.DiGraph) -> nx.DiGraph:
    """
    Build a layout graph using the union-node model for family charts.

    Spouse pairs are joined through a "union" node and children hang from the
    union node of their parents, so spouses share a rank and siblings align.

    Args:
        G: Graph from ``build_graph`` (or a family subgraph of it)

    Returns:
        A new graph with union nodes suitable for hierarchical layout
    """
    H = nx.DiGraph()

    for n, data in G.nodes(data=True):
        H.add_node(n, node_type="person", **data)

    fam_for_pair: dict[tuple, str] = {}
    for a, b in spouse_pairs(G):
        union_id = f"UNION_{a}_{b}"
        fam_for_pair[(a, b)] = union_id
        H.add_node(union_id, node_type="union", spouses=(a, b))
        H.add_edge(a, union_id, edge_type="spouse_to_union")
        H.add_edge(b, union_id, edge_type="spouse_to_union")

    parents_by_child: dict[int, list[int]] = {}
    for parent, child in parent_child_pairs(G):
        parents_by_child.setdefault(child, []).append(parent)

    for child, parents in parents_by_child.items():
        parents = list(dict.fromkeys(parents))

        union_id = None
        if len(parents) >= 2:
            for p1, p2 in itertools.combinations(parents, 2):
                a, b = tuple(sorted([p1, p2], key=str))
                if (a, b) in fam_for_pair:
                    union_id = fam_for_pair[(a, b)]
                    break

        # Single parent (or parents without a spouse assertion)
        if union_id is None:
            union_id = f"UNION_{'_'.join(map(str, sorted(parents, key=str)))}"
            if union_id not in H:
                H.add_node(union_id, node_type="union", spouses=tuple(parents))
                for p in parents:
                    H.add_edge(p, union_id, edge_type="spouse_to_union")

        H.add_edge(union_id, child, edge_type="union_to_child")

    return H
