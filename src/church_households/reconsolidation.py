"""Batch repair of drift between the relationship ledger and family grouping."""

from dataclasses import dataclass
import sqlite3

from church_households.backfill import backfill_relationships
from church_households.config import get_config
from church_households.consolidation import consolidate_pair
from church_households.database import (
    all_relationships,
    atomic,
    family_members,
    find_person,
    get_family,
    list_families,
    update_relationship_derived,
)
from church_households.exceptions import UnknownRelationKindError
from church_households.logger import get_logger
from church_households.models import Relationship
from church_households.relations import (
    RelationKind,
    implies_shared_household,
    inverse_of,
    is_symmetric,
)

logger = get_logger(__name__)


@dataclass
class ReconsolidationReport:
    relationships_created: int = 0
    relationships_updated: int = 0
    families_consolidated: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "relationshipsCreated": self.relationships_created,
            "relationshipsUpdated": self.relationships_updated,
            "familiesConsolidated": self.families_consolidated,
        }


def _parse_kind(relationship: Relationship) -> RelationKind | None:
    try:
        return RelationKind.parse(relationship.kind)
    except UnknownRelationKindError:
        logger.warning(
            "Relationship %s has unknown kind %r, left untouched",
            relationship.id,
            relationship.kind,
        )
        return None


def repair_derived_columns(conn: sqlite3.Connection, relationship: Relationship) -> bool:
    """Re-derive the stored inverse label and symmetry flag; True when the row changed."""
    kind = _parse_kind(relationship)
    if kind is None:
        return False

    inverse = inverse_of(kind).value
    symmetric = is_symmetric(kind)
    if relationship.inverse_kind == inverse and relationship.is_symmetric == symmetric:
        return False

    with atomic(conn, f"repair of relationship {relationship.id}"):
        update_relationship_derived(conn, relationship.id, inverse, symmetric)
    logger.info(
        "Relationship %s inverse %r -> %r",
        relationship.id,
        relationship.inverse_kind,
        inverse,
    )
    return True


def reconsolidate(
    conn: sqlite3.Connection,
    family_id: int | None = None,
    eligible_category: str | None = None,
) -> ReconsolidationReport:
    """
    Re-apply pair consolidation to every assertion, then back-fill every touched family.

    With ``family_id`` only assertions involving a current member of that
    family are processed. Each step commits on its own; re-running on a
    consistent database changes nothing and reports zeros.
    """
    category = eligible_category or get_config().eligible_category
    report = ReconsolidationReport()

    relationships = all_relationships(conn)
    scope: set[int] = set()
    if family_id is not None:
        get_family(conn, family_id)
        scope = {member.id for member in family_members(conn, family_id)}
        relationships = [
            r for r in relationships if r.person1_id in scope or r.person2_id in scope
        ]

    logger.info(
        "Reconsolidating %d relationships (%s)",
        len(relationships),
        f"family {family_id}" if family_id is not None else "all families",
    )

    touched: set[int] = set(scope)
    for relationship in relationships:
        if repair_derived_columns(conn, relationship):
            report.relationships_updated += 1

        kind = _parse_kind(relationship)
        if kind is None or not implies_shared_household(kind):
            continue

        result = consolidate_pair(
            conn,
            relationship.person1_id,
            relationship.person2_id,
            kind,
            eligible_category=category,
        )
        if result.changed:
            report.families_consolidated += 1
        if result.family_id is not None:
            touched.update((relationship.person1_id, relationship.person2_id))

    if family_id is None:
        family_ids = [family.id for family in list_families(conn) if family.member_count]
    else:
        # Merges may have moved the scoped members into another family
        family_ids = sorted(
            {
                person.family_id
                for person in (find_person(conn, pid) for pid in touched)
                if person is not None and person.family_id is not None
            }
        )

    for fid in family_ids:
        for member in family_members(conn, fid, category=category):
            report.relationships_created += backfill_relationships(
                conn, member.id, fid, eligible_category=category
            ).created

    logger.info("Reconsolidation finished: %s", report.as_dict())
    return report
