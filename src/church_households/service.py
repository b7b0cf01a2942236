"""
Entry points used by the membership screens and the maintenance tooling.

These functions validate caller input, then hand over to the consolidation
engine. They raise ``FamilySyncError`` subclasses for rejected input and never
let raw ``sqlite3`` errors escape.
"""

from dataclasses import dataclass
import sqlite3

from church_households.consolidation import ConsolidationResult, consolidate_pair
from church_households.database import (
    atomic,
    delete_relationship,
    family_members,
    find_person,
    find_relationship_between,
    get_family,
    get_person,
    get_relationship,
    insert_relationship,
    relationships_of,
    transaction,
)
from church_households.exceptions import (
    ConsolidationError,
    DuplicateRelationshipError,
    FamilySyncError,
    PersonNotFoundError,
    RelationshipNotFoundError,
    ValidationError,
)
from church_households.logger import get_logger
from church_households.models import PERSON_CATEGORIES, Family, Person, Relationship
from church_households.reconsolidation import reconsolidate
from church_households.relations import RelationKind, inverse_of, is_symmetric

logger = get_logger(__name__)

SYNC_FAILED_MESSAGE = "Relationship created, but the family could not be synchronized"


@dataclass
class RelationshipCreated:
    relationship: Relationship
    consolidation: ConsolidationResult | None
    message: str


@dataclass
class Relative:
    relationship_id: int
    label: str  # what the person asked about is to this relative
    person: Person
    created_at: str | None


@dataclass
class FamilySummary:
    family: Family
    members: list[Person]


def _require_person(conn: sqlite3.Connection, person_id: int, type_tag: str) -> Person:
    if type_tag not in PERSON_CATEGORIES:
        raise ValidationError(f"Invalid person type: {type_tag!r}")
    person = find_person(conn, person_id)
    if person is None or person.category != type_tag:
        raise PersonNotFoundError(person_id)
    return person


def create_relationship(
    conn: sqlite3.Connection,
    person_a_id: int,
    person_a_type: str,
    person_b_id: int,
    person_b_type: str,
    kind_label: str,
) -> RelationshipCreated:
    """
    Record that A is ``kind_label`` of B, then synchronize their family.

    The assertion is kept even when synchronization fails; the failure is
    logged and reported in the message so the batch consolidation can repair
    it later.
    """
    person_a = _require_person(conn, person_a_id, person_a_type)
    person_b = _require_person(conn, person_b_id, person_b_type)
    if person_a.id == person_b.id:
        raise ValidationError("A person cannot be related to themselves")

    kind = RelationKind.parse(kind_label)
    duplicate = DuplicateRelationshipError(
        f"{person_a.full_name} and {person_b.full_name} already have a relationship"
    )

    try:
        with transaction(conn):
            if find_relationship_between(conn, person_a.id, person_b.id) is not None:
                raise duplicate
            relationship_id = insert_relationship(
                conn,
                person_a.id,
                person_b.id,
                kind.value,
                inverse_of(kind).value,
                is_symmetric(kind),
                context_family_id=person_a.family_id,
            )
    except sqlite3.IntegrityError as exc:
        raise duplicate from exc
    except sqlite3.Error as exc:
        logger.error("Could not store relationship %s-%s: %s", person_a.id, person_b.id, exc)
        raise ConsolidationError("The relationship could not be stored") from exc

    relationship = get_relationship(conn, relationship_id)
    logger.info(
        "Relationship %s created: %s is %s of %s",
        relationship_id,
        person_a.id,
        kind.value,
        person_b.id,
    )

    try:
        result = consolidate_pair(conn, person_a.id, person_b.id, kind)
    except FamilySyncError as exc:
        logger.error("Family synchronization failed for relationship %s: %s", relationship_id, exc)
        return RelationshipCreated(relationship, None, SYNC_FAILED_MESSAGE)

    return RelationshipCreated(relationship, result, result.message)


def run_consolidation(
    conn: sqlite3.Connection, family_id: int | None = None, confirm: bool = False
) -> dict[str, int]:
    """Batch consolidation; requires explicit confirmation."""
    if not confirm:
        raise ValidationError("Consolidation must be confirmed explicitly")
    return reconsolidate(conn, family_id).as_dict()


def list_relationships(conn: sqlite3.Connection, person_id: int) -> list[Relative]:
    """Relatives of a person, newest assertion first."""
    get_person(conn, person_id)

    relatives = []
    for relationship in relationships_of(conn, person_id):
        other = find_person(conn, relationship.other(person_id))
        if other is None:
            continue
        relatives.append(
            Relative(
                relationship_id=relationship.id,
                label=relationship.relative_label(person_id),
                person=other,
                created_at=relationship.created_at,
            )
        )
    return relatives


def remove_relationship(
    conn: sqlite3.Connection, person_id: int, relationship_id: int
) -> Relationship:
    """Delete one assertion involving ``person_id``; family pointers stay as they are."""
    get_person(conn, person_id)
    relationship = get_relationship(conn, relationship_id)
    if relationship is None or person_id not in (relationship.person1_id, relationship.person2_id):
        raise RelationshipNotFoundError(relationship_id)

    with atomic(conn, f"removal of relationship {relationship_id}"):
        delete_relationship(conn, relationship_id)

    logger.info("Relationship %s removed by person %s", relationship_id, person_id)
    return relationship


def family_summary(conn: sqlite3.Connection, family_id: int) -> FamilySummary:
    return FamilySummary(get_family(conn, family_id), family_members(conn, family_id))
