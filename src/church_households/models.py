"""Data classes for household records."""

from dataclasses import dataclass

MEMBER = "member"
VISITOR = "visitor"
PERSON_CATEGORIES = (MEMBER, VISITOR)


@dataclass
class Person:
    id: int
    given_names: str
    surname: str
    category: str  # member or visitor
    family_id: int | None = None
    family_role: str | None = None  # e.g. "Cabeza de Familia", "Hijo/a"
    email: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.given_names} {self.surname}".strip()


@dataclass
class Family:
    id: int
    surname: str
    name: str | None = None
    head_person_id: int | None = None
    status: str = "Activa"
    notes: str | None = None
    created_at: str | None = None
    member_count: int = 0

    @property
    def display_name(self) -> str:
        return self.name or f"Familia {self.surname}"


@dataclass
class Relationship:
    id: int
    person1_id: int
    person2_id: int
    kind: str  # relation from person1 to person2
    inverse_kind: str
    is_symmetric: bool
    context_family_id: int | None = None
    created_at: str | None = None

    def other(self, person_id: int) -> int:
        return self.person2_id if person_id == self.person1_id else self.person1_id

    def relative_label(self, person_id: int) -> str:
        """What ``person_id`` is to the other person."""
        return self.kind if person_id == self.person1_id else self.inverse_kind
