"""Relationship vocabulary: inverses, symmetry, household implication and role inference."""

from enum import Enum

from church_households.exceptions import UnknownRelationKindError
from church_households.logger import get_logger

logger = get_logger(__name__)

HEAD_OF_FAMILY = "Cabeza de Familia"


class RelationKind(Enum):
    """Relation from the first person of an assertion to the second."""

    SPOUSE = "Esposo/a"
    PARTNER = "Cónyuge"
    CHILD = "Hijo/a"
    PARENT = "Padre/Madre"
    SIBLING = "Hermano/a"
    GRANDPARENT = "Abuelo/a"
    GRANDCHILD = "Nieto/a"
    UNCLE_AUNT = "Tío/a"
    NEPHEW_NIECE = "Sobrino/a"
    COUSIN = "Primo/a"
    SIBLING_IN_LAW = "Cuñado/a"
    PARENT_IN_LAW = "Suegro/a"
    CHILD_IN_LAW = "Yerno/Nuera"
    OTHER = "Otro"

    @classmethod
    def parse(cls, label: "str | RelationKind") -> "RelationKind":
        """Strict parse of a stored or user-supplied label."""
        if isinstance(label, cls):
            return label
        text = str(label).strip()
        try:
            return cls(text)
        except ValueError:
            pass
        if text in ALIASES:
            return ALIASES[text]
        if text.upper() in cls.__members__:
            return cls[text.upper()]
        raise UnknownRelationKindError(text)


# Gendered labels used by the membership forms
ALIASES = {
    "Padre": RelationKind.PARENT,
    "Madre": RelationKind.PARENT,
}

INVERSES = {
    RelationKind.SPOUSE: RelationKind.SPOUSE,
    RelationKind.PARTNER: RelationKind.PARTNER,
    RelationKind.CHILD: RelationKind.PARENT,
    RelationKind.PARENT: RelationKind.CHILD,
    RelationKind.SIBLING: RelationKind.SIBLING,
    RelationKind.GRANDPARENT: RelationKind.GRANDCHILD,
    RelationKind.GRANDCHILD: RelationKind.GRANDPARENT,
    RelationKind.UNCLE_AUNT: RelationKind.NEPHEW_NIECE,
    RelationKind.NEPHEW_NIECE: RelationKind.UNCLE_AUNT,
    RelationKind.COUSIN: RelationKind.COUSIN,
    RelationKind.SIBLING_IN_LAW: RelationKind.SIBLING_IN_LAW,
    RelationKind.PARENT_IN_LAW: RelationKind.CHILD_IN_LAW,
    RelationKind.CHILD_IN_LAW: RelationKind.PARENT_IN_LAW,
    RelationKind.OTHER: RelationKind.OTHER,
}

SYMMETRIC_KINDS = frozenset(
    {
        RelationKind.SPOUSE,
        RelationKind.PARTNER,
        RelationKind.SIBLING,
        RelationKind.COUSIN,
        RelationKind.SIBLING_IN_LAW,
    }
)

HOUSEHOLD_KINDS = frozenset(
    {
        RelationKind.SPOUSE,
        RelationKind.PARTNER,
        RelationKind.CHILD,
        RelationKind.PARENT,
        RelationKind.SIBLING,
    }
)


def inverse_of(kind: "RelationKind | str") -> RelationKind:
    """
    Return the relation seen from the other side.

    Raw labels that are not part of the vocabulary fall back to OTHER.
    """
    try:
        kind = RelationKind.parse(kind)
    except UnknownRelationKindError:
        logger.warning("Unrecognized relationship kind %r, using %s", kind, RelationKind.OTHER.value)
        return RelationKind.OTHER
    return INVERSES[kind]


def is_symmetric(kind: RelationKind) -> bool:
    return kind in SYMMETRIC_KINDS


def implies_shared_household(kind: RelationKind) -> bool:
    return kind in HOUSEHOLD_KINDS


def derive_roles(kind: RelationKind) -> tuple[str, str]:
    """Family role labels for (person A, person B) once they share a family."""
    if kind in (RelationKind.SPOUSE, RelationKind.PARTNER):
        return HEAD_OF_FAMILY, kind.value
    if kind is RelationKind.PARENT:
        return HEAD_OF_FAMILY, RelationKind.CHILD.value
    return kind.value, inverse_of(kind).value


def household_head(kind: RelationKind) -> str:
    """Which side ("a" or "b") heads a family created for this kind."""
    return "b" if kind is RelationKind.CHILD else "a"


# (new person's role, existing member's role) -> relation from new person to member.
# Pairs missing here are not guessed.
_SPOUSE = RelationKind.SPOUSE.value
_PARTNER = RelationKind.PARTNER.value
_CHILD = RelationKind.CHILD.value
_PARENT = RelationKind.PARENT.value
_SIBLING = RelationKind.SIBLING.value

INFERENCE_TABLE = {
    (HEAD_OF_FAMILY, _SPOUSE): RelationKind.SPOUSE,
    (HEAD_OF_FAMILY, _PARTNER): RelationKind.PARTNER,
    (HEAD_OF_FAMILY, _CHILD): RelationKind.PARENT,
    (HEAD_OF_FAMILY, _PARENT): RelationKind.CHILD,
    (HEAD_OF_FAMILY, _SIBLING): RelationKind.SIBLING,
    (_SPOUSE, HEAD_OF_FAMILY): RelationKind.SPOUSE,
    (_SPOUSE, _CHILD): RelationKind.PARENT,
    (_PARTNER, HEAD_OF_FAMILY): RelationKind.PARTNER,
    (_PARTNER, _CHILD): RelationKind.PARENT,
    (_CHILD, HEAD_OF_FAMILY): RelationKind.CHILD,
    (_CHILD, _SPOUSE): RelationKind.CHILD,
    (_CHILD, _PARTNER): RelationKind.CHILD,
    (_CHILD, _PARENT): RelationKind.CHILD,
    (_CHILD, _CHILD): RelationKind.SIBLING,
    (_PARENT, HEAD_OF_FAMILY): RelationKind.PARENT,
    (_PARENT, _CHILD): RelationKind.PARENT,
    (_SIBLING, HEAD_OF_FAMILY): RelationKind.SIBLING,
    (_SIBLING, _SIBLING): RelationKind.SIBLING,
}


def normalize_role(role: str | None) -> str | None:
    if role is None:
        return None
    role = role.strip()
    alias = ALIASES.get(role)
    return alias.value if alias else role


def infer_relation(new_role: str | None, existing_role: str | None) -> RelationKind | None:
    """Relation from a newly added family member to an existing one, or None."""
    return INFERENCE_TABLE.get((normalize_role(new_role), normalize_role(existing_role)))
