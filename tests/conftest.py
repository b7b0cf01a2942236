import sys
from pathlib import Path

import pytest

# Ensure the project src directory is on sys.path for test imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from church_households.database import (  # noqa: E402
    add_person,
    create_database,
    insert_relationship,
    store_data,
    transaction,
)
from church_households.exceptions import UnknownRelationKindError  # noqa: E402
from church_households.models import Family, Person  # noqa: E402
from church_households.relations import RelationKind, inverse_of, is_symmetric  # noqa: E402


@pytest.fixture
def conn():
    conn = create_database(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def member(conn):
    """Register a member without family: member("Ana", "Pérez")."""

    def _member(given_names, surname="Pérez", category="member"):
        return add_person(conn, given_names, surname, category)

    return _member


@pytest.fixture
def seed(conn):
    """
    Load families directly: seed({1: [("Ana", "Cabeza de Familia"), ...]}, loose=["Luis"]).

    Returns a dict mapping given names to person ids.
    """

    def _seed(families, loose=()):
        persons = []
        ids = {}
        next_id = 1
        for family_id, people in families.items():
            for given_names, role in people:
                persons.append(
                    Person(
                        id=next_id,
                        given_names=given_names,
                        surname=f"Apellido{family_id}",
                        category="member",
                        family_id=family_id,
                        family_role=role,
                    )
                )
                ids[given_names] = next_id
                next_id += 1
        for given_names in loose:
            persons.append(Person(id=next_id, given_names=given_names, surname="Suelto", category="member"))
            ids[given_names] = next_id
            next_id += 1

        store_data(
            conn,
            [Family(id=fid, surname=f"Apellido{fid}") for fid in families],
            persons,
            [],
        )
        return ids

    return _seed


@pytest.fixture
def ledger(conn):
    """Write an assertion straight into the ledger: ledger(a, b, "Esposo/a", inverse=None)."""

    def _ledger(person1_id, person2_id, kind, inverse=None, context_family_id=None):
        try:
            parsed = RelationKind.parse(kind)
        except UnknownRelationKindError:
            parsed = None
        if parsed is not None:
            inverse = inverse or inverse_of(parsed).value
            symmetric = is_symmetric(parsed)
        else:
            inverse = inverse or "Otro"
            symmetric = False
        with transaction(conn):
            return insert_relationship(
                conn, person1_id, person2_id, kind, inverse, symmetric, context_family_id
            )

    return _ledger
