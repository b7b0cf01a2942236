from pathlib import Path

import pydot
import pytest

from church_households.graph import (
    build_graph,
    build_union_layout_graph,
    get_family_subgraph,
    household_groups,
    parent_child_pairs,
)
from church_households.plotting import build_family_dot, plot_family
from church_households.relations import HEAD_OF_FAMILY
from church_households.validation import validate_graph


@pytest.fixture
def household(seed, ledger):
    """Parents with two children in family 1, plus a cousin in family 2."""
    ids = seed(
        {
            1: [
                ("Jorge", HEAD_OF_FAMILY),
                ("Marta", "Esposo/a"),
                ("Sofía", "Hijo/a"),
                ("Tomás", "Hijo/a"),
            ],
            2: [("Primo", HEAD_OF_FAMILY)],
        }
    )
    ledger(ids["Jorge"], ids["Marta"], "Esposo/a")
    ledger(ids["Sofía"], ids["Jorge"], "Hijo/a")
    ledger(ids["Marta"], ids["Sofía"], "Padre/Madre")
    ledger(ids["Tomás"], ids["Jorge"], "Hijo/a")
    ledger(ids["Tomás"], ids["Marta"], "Hijo/a")
    ledger(ids["Primo"], ids["Sofía"], "Primo/a")
    return ids


def test_build_graph(conn, household):
    G = build_graph(conn)

    assert G.number_of_nodes() == 5
    assert G.number_of_edges() == 6
    assert G.nodes[household["Jorge"]]["person_name"] == "Jorge Apellido1"
    assert G.nodes[household["Jorge"]]["family_id"] == 1
    edge = G.edges[household["Sofía"], household["Jorge"]]
    assert edge["relationship_type"] == "Hijo/a"
    assert edge["inverse_type"] == "Padre/Madre"


def test_household_groups_ignore_extended_family(conn, household):
    G = build_graph(conn)

    groups = household_groups(G, category="member")

    assert groups == [{household["Jorge"], household["Marta"], household["Sofía"], household["Tomás"]}]


def test_parent_child_pairs_point_from_parent(conn, household):
    pairs = set(parent_child_pairs(build_graph(conn)))

    assert (household["Jorge"], household["Sofía"]) in pairs
    assert (household["Marta"], household["Sofía"]) in pairs
    assert (household["Marta"], household["Tomás"]) in pairs


def test_family_subgraph(conn, household):
    G = build_graph(conn)

    sub = get_family_subgraph(G, 2)
    assert list(sub.nodes) == [household["Primo"]]

    with pytest.raises(ValueError):
        get_family_subgraph(G, 99)


def test_consistent_ledger_has_no_warnings(conn, household):
    assert validate_graph(build_graph(conn), category="member") == []


def test_split_household_is_reported(conn, seed, ledger):
    ids = seed({1: [("A", None)], 2: [("B", None)]}, loose=["C"])
    ledger(ids["A"], ids["B"], "Esposo/a")
    ledger(ids["C"], ids["B"], "Hermano/a")

    warnings = validate_graph(build_graph(conn), category="member")

    assert len(warnings) == 1
    assert warnings[0].startswith("Household not fully assigned to a family")

    conn.execute("UPDATE person SET family_id = 2 WHERE id = ?", (ids["C"],))
    warnings = validate_graph(build_graph(conn), category="member")

    assert warnings == [
        "Household split across families [1, 2]: A Apellido1, B Apellido2, C Suelto"
    ]


def test_stale_inverse_and_unknown_kind_are_reported(conn, seed, ledger):
    ids = seed({1: [("A", None), ("B", None), ("C", None)]})
    ledger(ids["A"], ids["B"], "Hijo/a", inverse="Hijo/a")
    ledger(ids["A"], ids["C"], "Padrino")

    warnings = validate_graph(build_graph(conn))

    assert any(w.startswith("Stale inverse on relationship") for w in warnings)
    assert any(w.startswith("Unknown kind 'Padrino'") for w in warnings)


def test_parent_cycle_is_reported(conn, seed, ledger):
    ids = seed({1: [("A", None), ("B", None), ("C", None)]})
    ledger(ids["A"], ids["B"], "Padre/Madre")
    ledger(ids["B"], ids["C"], "Padre/Madre")
    ledger(ids["C"], ids["A"], "Padre/Madre")

    warnings = validate_graph(build_graph(conn))

    assert any(w.startswith("Cycle detected") for w in warnings)


def test_union_layout_joins_children_to_their_parents(conn, household):
    H = build_union_layout_graph(get_family_subgraph(build_graph(conn), 1))

    unions = [n for n, data in H.nodes(data=True) if data["node_type"] == "union"]
    assert len(unions) == 1
    union = unions[0]
    assert set(H.predecessors(union)) == {household["Jorge"], household["Marta"]}
    assert set(H.successors(union)) == {household["Sofía"], household["Tomás"]}
    assert H.edges[union, household["Tomás"]]["edge_type"] == "union_to_child"


def test_family_chart_nodes(conn, household):
    P = build_family_dot(build_graph(conn), 1)

    names = {node.get_name() for node in P.get_nodes()}
    assert {str(household[n]) for n in ("Jorge", "Marta", "Sofía", "Tomás")} <= names
    assert str(household["Primo"]) not in names
    assert len(P.get_subgraphs()) == 1


def test_unlinked_family_member_is_reported(conn, household):
    conn.execute("UPDATE person SET family_id = 1 WHERE id = ?", (household["Primo"],))

    warnings = validate_graph(build_graph(conn), category="member")

    assert len(warnings) == 1
    assert warnings[0].startswith("Family 1 members not all linked by relationships")
    assert "Primo Apellido2" in warnings[0]


def test_preview_removes_temporary_png(conn, household, monkeypatch):
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.image as mpimg
    import matplotlib.pyplot as plt

    written = []

    def fake_write(self, path, format="raw", prog=None, encoding=None):
        written.append(Path(path))
        Path(path).write_bytes(b"png")
        return True

    monkeypatch.setattr(pydot.Dot, "write", fake_write)
    monkeypatch.setattr(mpimg, "imread", lambda path: [[0.0, 1.0], [1.0, 0.0]])
    monkeypatch.setattr(plt, "show", lambda: None)

    plot_family(build_graph(conn), 1)
    plt.close("all")

    assert len(written) == 1
    assert written[0].suffix == ".png"
    assert not written[0].exists()
