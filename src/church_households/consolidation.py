"""
Family consolidation: keep the family grouping in step with household relationships.

``consolidate_pair`` resolves the family of two related people. Depending on
where they stand it does nothing, appends one to the other's family, merges
their two families, or creates a new family for both. All the writes of one
call happen in a single transaction.
"""

from dataclasses import dataclass
from enum import Enum
import sqlite3

from church_households.backfill import BackfillResult, backfill_relationships
from church_households.config import get_config
from church_households.database import (
    atomic,
    delete_family,
    get_family,
    get_person,
    insert_family,
    member_count,
    move_members,
    set_membership,
)
from church_households.exceptions import NotInFamilyError, UnknownRelationKindError, ValidationError
from church_households.logger import get_logger
from church_households.relations import (
    HEAD_OF_FAMILY,
    RelationKind,
    derive_roles,
    household_head,
    implies_shared_household,
    normalize_role,
)

logger = get_logger(__name__)


class ConsolidationAction(Enum):
    NOT_APPLICABLE = "not_applicable"
    ALREADY_CONSOLIDATED = "already_consolidated"
    APPENDED = "appended"
    MERGED = "merged"
    CREATED = "created"


MESSAGES = {
    ConsolidationAction.NOT_APPLICABLE: "No family synchronization required",
    ConsolidationAction.ALREADY_CONSOLIDATED: "Both people already share the same family",
    ConsolidationAction.APPENDED: "Family synchronized: added to existing family",
    ConsolidationAction.MERGED: "Family synchronized: families merged",
    ConsolidationAction.CREATED: "Family synchronized: new family created",
}


@dataclass
class ConsolidationResult:
    action: ConsolidationAction
    family_id: int | None = None
    absorbed_family_id: int | None = None

    @property
    def changed(self) -> bool:
        return self.action in (
            ConsolidationAction.APPENDED,
            ConsolidationAction.MERGED,
            ConsolidationAction.CREATED,
        )

    @property
    def message(self) -> str:
        return MESSAGES[self.action]


@dataclass
class MergeOutcome:
    surviving_family_id: int
    absorbed_family_id: int
    moved: int


def merge_families(conn: sqlite3.Connection, family_a_id: int, family_b_id: int) -> MergeOutcome:
    """
    Union two families into one.

    The family with more members survives; on a tie ``family_a_id`` survives.
    Members and ledger context of the other family are re-pointed to the
    survivor, then the absorbed family is deleted.
    """
    if family_a_id == family_b_id:
        raise ValidationError(f"Cannot merge family {family_a_id} into itself")

    with atomic(conn, f"merge of families {family_a_id} and {family_b_id}"):
        get_family(conn, family_a_id)
        get_family(conn, family_b_id)

        count_a = member_count(conn, family_a_id)
        count_b = member_count(conn, family_b_id)
        if count_a >= count_b:
            survivor, absorbed = family_a_id, family_b_id
        else:
            survivor, absorbed = family_b_id, family_a_id

        moved = move_members(conn, absorbed, survivor)
        delete_family(conn, absorbed)

    logger.info(
        "Merged family %s into %s (%d people moved, sizes %d/%d)",
        absorbed,
        survivor,
        moved,
        count_a,
        count_b,
    )
    return MergeOutcome(surviving_family_id=survivor, absorbed_family_id=absorbed, moved=moved)


def consolidate_pair(
    conn: sqlite3.Connection,
    person_a_id: int,
    person_b_id: int,
    kind: RelationKind | str,
    eligible_category: str | None = None,
) -> ConsolidationResult:
    """Make two people related by ``kind`` (A is ``kind`` of B) share one family."""
    if person_a_id == person_b_id:
        raise ValidationError("A person cannot be related to themselves")

    try:
        kind = RelationKind.parse(kind)
    except UnknownRelationKindError:
        logger.warning(
            "Unknown kind %r for %s and %s, no consolidation", kind, person_a_id, person_b_id
        )
        return ConsolidationResult(ConsolidationAction.NOT_APPLICABLE)

    if not implies_shared_household(kind):
        return ConsolidationResult(ConsolidationAction.NOT_APPLICABLE)

    category = eligible_category or get_config().eligible_category

    with atomic(conn, f"consolidation of {person_a_id} and {person_b_id}"):
        person_a = get_person(conn, person_a_id)
        person_b = get_person(conn, person_b_id)

        if person_a.category != category or person_b.category != category:
            return ConsolidationResult(ConsolidationAction.NOT_APPLICABLE)

        family_a, family_b = person_a.family_id, person_b.family_id
        absorbed = None

        if family_a is not None and family_a == family_b:
            return ConsolidationResult(ConsolidationAction.ALREADY_CONSOLIDATED, family_a)

        if family_a is not None and family_b is not None:
            outcome = merge_families(conn, family_a, family_b)
            target, absorbed = outcome.surviving_family_id, outcome.absorbed_family_id
            action = ConsolidationAction.MERGED
        elif family_a is not None or family_b is not None:
            target = family_a if family_a is not None else family_b
            action = ConsolidationAction.APPENDED
        else:
            head = person_a if household_head(kind) == "a" else person_b
            target = insert_family(
                conn,
                surname=head.surname,
                head_person_id=head.id,
                notes=f"Created automatically from relationship: {kind.value}",
            )
            action = ConsolidationAction.CREATED

        role_a, role_b = derive_roles(kind)
        set_membership(conn, person_a_id, target, role_a)
        set_membership(conn, person_b_id, target, role_b)

    result = ConsolidationResult(action, target, absorbed)
    logger.info(
        "Consolidated %s and %s (%s): %s -> family %s",
        person_a_id,
        person_b_id,
        kind.value,
        action.value,
        target,
    )
    return result


def join_family(
    conn: sqlite3.Connection,
    person_id: int,
    family_id: int,
    role: str | None = None,
    eligible_category: str | None = None,
) -> BackfillResult:
    """Place a person without a family into ``family_id`` and back-fill relationships."""
    with atomic(conn, f"join of person {person_id} to family {family_id}"):
        person = get_person(conn, person_id)
        family = get_family(conn, family_id)

        if person.family_id is not None and person.family_id != family_id:
            current = get_family(conn, person.family_id)
            raise ValidationError(
                f"{person.full_name} already belongs to {current.display_name}"
            )

        if role is None:
            if family.head_person_id == person_id:
                role = HEAD_OF_FAMILY
            elif person.family_id == family_id:
                role = person.family_role

        role = normalize_role(role)
        set_membership(conn, person_id, family_id, role)

    logger.info("Person %s joined family %s as %s", person_id, family_id, role)
    return backfill_relationships(
        conn, person_id, family_id, role=role, eligible_category=eligible_category
    )


def _require_membership(conn: sqlite3.Connection, person_id: int, family_id: int):
    person = get_person(conn, person_id)
    family = get_family(conn, family_id)
    if person.family_id != family_id:
        raise NotInFamilyError(person_id, family_id)
    return person, family


def leave_family(conn: sqlite3.Connection, person_id: int, family_id: int) -> None:
    """
    Take a person out of ``family_id``, clearing their family and role.

    The recorded head cannot leave; assign another head first. Relationship
    assertions are kept.
    """
    with atomic(conn, f"removal of person {person_id} from family {family_id}"):
        person, family = _require_membership(conn, person_id, family_id)
        if family.head_person_id == person_id:
            raise ValidationError(
                f"{person.full_name} is the head of {family.display_name}; assign another head first"
            )
        set_membership(conn, person_id, None, None)

    logger.info("Person %s left family %s", person_id, family_id)


def set_family_role(conn: sqlite3.Connection, person_id: int, family_id: int, role: str) -> str:
    """Change the role of a member of ``family_id``; returns the stored role."""
    role = normalize_role(role)
    if not role:
        raise ValidationError("A family role is required")

    with atomic(conn, f"role update of person {person_id} in family {family_id}"):
        _require_membership(conn, person_id, family_id)
        set_membership(conn, person_id, family_id, role)

    logger.info("Person %s is now %s in family %s", person_id, role, family_id)
    return role
