"""Infer relationship assertions from shared family membership."""

from dataclasses import dataclass
import sqlite3

from church_households.config import get_config
from church_households.database import (
    atomic,
    family_members,
    find_relationship_between,
    get_person,
    insert_relationship,
)
from church_households.logger import get_logger
from church_households.relations import infer_relation, inverse_of, is_symmetric

logger = get_logger(__name__)


@dataclass
class BackfillResult:
    created: int = 0
    skipped: int = 0

    @property
    def message(self) -> str:
        return f"{self.created} family relationships created automatically"


def backfill_relationships(
    conn: sqlite3.Connection,
    person_id: int,
    family_id: int,
    role: str | None = None,
    eligible_category: str | None = None,
) -> BackfillResult:
    """
    Record the relationships implied between ``person_id`` and the rest of its family.

    ``role`` defaults to the person's stored family role. Members whose role
    pair has no entry in the inference table, and members already linked to
    the person, are skipped. Running it again on an unchanged family creates
    nothing.
    """
    category = eligible_category or get_config().eligible_category
    result = BackfillResult()

    with atomic(conn, f"back-fill of person {person_id} in family {family_id}"):
        if role is None:
            role = get_person(conn, person_id).family_role

        for member in family_members(conn, family_id, category=category):
            if member.id == person_id:
                continue

            kind = infer_relation(role, member.family_role)
            if kind is None:
                logger.debug(
                    "No inference for roles %r -> %r (%s, %s), skipped",
                    role,
                    member.family_role,
                    person_id,
                    member.id,
                )
                result.skipped += 1
                continue

            if find_relationship_between(conn, person_id, member.id) is not None:
                continue

            insert_relationship(
                conn,
                person_id,
                member.id,
                kind.value,
                inverse_of(kind).value,
                is_symmetric(kind),
                context_family_id=family_id,
            )
            result.created += 1

    if result.created:
        logger.info(
            "Back-filled %d relationships for person %s in family %s",
            result.created,
            person_id,
            family_id,
        )
    return result
