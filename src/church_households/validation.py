"""Consistency checks between the relationship ledger and family grouping."""

import networkx as nx

from church_households.graph import edge_kind, household_edges, household_groups, parent_child_pairs
from church_households.relations import inverse_of


def validate_graph(G: nx.DiGraph, category: str | None = None) -> list[str]:
    """
    Validate the household graph for:
    - Cycles in parent-child relationships
    - Unknown relationship kinds and stale inverse labels
    - Household groups that are not in exactly one family
    - Families whose members are not connected by household relationships

    Returns a list of warning messages.
    """
    warnings: list[str] = []

    parent_graph = nx.DiGraph(parent_child_pairs(G))

    try:
        cycle = nx.find_cycle(parent_graph, orientation="original")
        cycle_nodes = [edge[0] for edge in cycle]
        warnings.append(f"Cycle detected in parent-child relationships: {cycle_nodes}")
    except nx.NetworkXNoCycle:
        pass

    for u, v, data in G.edges(data=True):
        kind = edge_kind(data)
        rel_id = data.get("relationship_id")
        if kind is None:
            warnings.append(
                f"Unknown kind {data.get('relationship_type')!r} on relationship {rel_id} ({u} -> {v})"
            )
            continue

        expected = inverse_of(kind).value
        if data.get("inverse_type") != expected:
            warnings.append(
                f"Stale inverse on relationship {rel_id}: "
                f"{data.get('inverse_type')!r} should be {expected!r}"
            )

    # Every household group must sit in one family
    for group in household_groups(G, category=category):
        families = {G.nodes[n].get("family_id") for n in group}
        names = sorted(G.nodes[n].get("person_name") or str(n) for n in group)
        if None in families:
            warnings.append(f"Household not fully assigned to a family: {', '.join(names)}")
        elif len(families) > 1:
            warnings.append(
                f"Household split across families {sorted(families)}: {', '.join(names)}"
            )

    by_family: dict[int, list] = {}
    for n, data in G.nodes(data=True):
        if data.get("family_id") is None:
            continue
        if category is not None and data.get("category") != category:
            continue
        by_family.setdefault(data["family_id"], []).append(n)

    linked = nx.Graph(household_edges(G))
    for family_id, members in sorted(by_family.items()):
        if len(members) < 2:
            continue
        sub = nx.Graph(linked.subgraph(members))
        sub.add_nodes_from(members)
        if nx.number_connected_components(sub) > 1:
            names = sorted(G.nodes[n].get("person_name") or str(n) for n in members)
            warnings.append(
                f"Family {family_id} members not all linked by relationships: {', '.join(names)}"
            )

    return warnings
