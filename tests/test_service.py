import sqlite3

import pytest

from church_households import service
from church_households.database import find_family, get_person, insert_relationship, transaction
from church_households.exceptions import (
    ConsolidationError,
    DuplicateRelationshipError,
    PersonNotFoundError,
    RelationshipNotFoundError,
    UnknownRelationKindError,
    ValidationError,
)
from church_households.service import (
    SYNC_FAILED_MESSAGE,
    create_relationship,
    family_summary,
    list_relationships,
    remove_relationship,
    run_consolidation,
)


def test_create_stores_assertion_and_synchronizes(conn, member):
    ana = member("Ana")
    luis = member("Luis")

    created = create_relationship(conn, ana.id, "member", luis.id, "member", "Esposo/a")

    rel = created.relationship
    assert (rel.person1_id, rel.person2_id) == (ana.id, luis.id)
    assert rel.kind == "Esposo/a"
    assert rel.inverse_kind == "Esposo/a"
    assert rel.is_symmetric
    assert rel.context_family_id is None
    assert created.message == "Family synchronized: new family created"
    assert get_person(conn, luis.id).family_id == created.consolidation.family_id


def test_gendered_label_is_stored_canonically(conn, member):
    madre = member("Marta")
    hijo = member("Tomás")

    created = create_relationship(conn, madre.id, "member", hijo.id, "member", "Madre")

    assert created.relationship.kind == "Padre/Madre"
    assert created.relationship.inverse_kind == "Hijo/a"


def test_context_is_family_of_first_person(conn, seed):
    ids = seed({1: [("Ana", "Cabeza de Familia")]}, loose=["Sara"])

    created = create_relationship(conn, ids["Ana"], "member", ids["Sara"], "member", "Madre")

    assert created.relationship.context_family_id == 1
    assert created.consolidation.family_id == 1
    assert get_person(conn, ids["Sara"]).family_id == 1
    assert get_person(conn, ids["Sara"]).family_role == "Hijo/a"


def test_duplicate_pair_is_rejected_in_either_direction(conn, member):
    ana = member("Ana")
    luis = member("Luis")
    create_relationship(conn, ana.id, "member", luis.id, "member", "Esposo/a")

    with pytest.raises(DuplicateRelationshipError):
        create_relationship(conn, ana.id, "member", luis.id, "member", "Hermano/a")
    with pytest.raises(DuplicateRelationshipError):
        create_relationship(conn, luis.id, "member", ana.id, "member", "Esposo/a")


def test_reversed_pair_violates_unique_index(conn, member):
    ana = member("Ana")
    luis = member("Luis")
    with transaction(conn):
        insert_relationship(conn, ana.id, luis.id, "Primo/a", "Primo/a", True)

    with pytest.raises(sqlite3.IntegrityError):
        with transaction(conn):
            insert_relationship(conn, luis.id, ana.id, "Primo/a", "Primo/a", True)


def test_input_is_validated(conn, member):
    ana = member("Ana")
    luis = member("Luis")

    with pytest.raises(ValidationError):
        create_relationship(conn, ana.id, "member", ana.id, "member", "Hermano/a")
    with pytest.raises(ValidationError):
        create_relationship(conn, ana.id, "friend", luis.id, "member", "Hermano/a")
    with pytest.raises(PersonNotFoundError):
        create_relationship(conn, ana.id, "visitor", luis.id, "member", "Hermano/a")
    with pytest.raises(PersonNotFoundError):
        create_relationship(conn, ana.id, "member", 404, "member", "Hermano/a")
    with pytest.raises(UnknownRelationKindError):
        create_relationship(conn, ana.id, "member", luis.id, "member", "Padrino")


def test_relation_with_visitor_is_not_synchronized(conn, member):
    ana = member("Ana")
    carla = member("Carla", category="visitor")

    created = create_relationship(conn, ana.id, "member", carla.id, "visitor", "Hermano/a")

    assert created.message == "No family synchronization required"
    assert get_person(conn, ana.id).family_id is None


def test_assertion_survives_failed_synchronization(conn, member, monkeypatch):
    ana = member("Ana")
    luis = member("Luis")

    def broken(*args, **kwargs):
        raise ConsolidationError("consolidation failed: database is locked")

    monkeypatch.setattr(service, "consolidate_pair", broken)

    created = create_relationship(conn, ana.id, "member", luis.id, "member", "Esposo/a")

    assert created.message == SYNC_FAILED_MESSAGE
    assert created.consolidation is None
    assert list_relationships(conn, ana.id)[0].relationship_id == created.relationship.id


def test_run_consolidation_requires_confirmation(conn):
    with pytest.raises(ValidationError):
        run_consolidation(conn)

    assert run_consolidation(conn, confirm=True) == {
        "relationshipsCreated": 0,
        "relationshipsUpdated": 0,
        "familiesConsolidated": 0,
    }


def test_relatives_are_labelled_from_each_side(conn, member):
    hija = member("Sofía")
    madre = member("Marta")
    create_relationship(conn, hija.id, "member", madre.id, "member", "Hijo/a")

    [seen_by_daughter] = list_relationships(conn, hija.id)
    [seen_by_mother] = list_relationships(conn, madre.id)

    assert seen_by_daughter.person.id == madre.id
    assert seen_by_daughter.label == "Hijo/a"
    assert seen_by_mother.person.id == hija.id
    assert seen_by_mother.label == "Padre/Madre"


def test_remove_relationship_keeps_family(conn, member):
    ana = member("Ana")
    luis = member("Luis")
    otro = member("Otro")
    created = create_relationship(conn, ana.id, "member", luis.id, "member", "Esposo/a")
    rel_id = created.relationship.id

    with pytest.raises(RelationshipNotFoundError):
        remove_relationship(conn, otro.id, rel_id)

    removed = remove_relationship(conn, luis.id, rel_id)

    assert removed.id == rel_id
    assert list_relationships(conn, ana.id) == []
    assert get_person(conn, luis.id).family_id == created.consolidation.family_id
    with pytest.raises(RelationshipNotFoundError):
        remove_relationship(conn, ana.id, rel_id)


def test_family_summary(conn, seed):
    ids = seed({1: [("Ana", "Cabeza de Familia"), ("Luis", "Esposo/a")]})

    summary = family_summary(conn, 1)

    assert summary.family == find_family(conn, 1)
    assert [p.id for p in summary.members] == [ids["Ana"], ids["Luis"]]
