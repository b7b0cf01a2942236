class FamilySyncError(Exception):
    """Base exception for household consolidation failures."""


class NotFoundError(FamilySyncError):
    """Raised when a referenced record does not exist."""


class PersonNotFoundError(NotFoundError):
    def __init__(self, person_id: int):
        super().__init__(f"Person {person_id} not found")
        self.person_id = person_id


class FamilyNotFoundError(NotFoundError):
    def __init__(self, family_id: int):
        super().__init__(f"Family {family_id} not found")
        self.family_id = family_id


class RelationshipNotFoundError(NotFoundError):
    def __init__(self, relationship_id: int):
        super().__init__(f"Relationship {relationship_id} not found")
        self.relationship_id = relationship_id


class NotInFamilyError(NotFoundError):
    def __init__(self, person_id: int, family_id: int):
        super().__init__(f"Person {person_id} is not a member of family {family_id}")
        self.person_id = person_id
        self.family_id = family_id


class ValidationError(FamilySyncError):
    """Raised when caller input is rejected."""


class UnknownRelationKindError(ValidationError):
    def __init__(self, label: str):
        super().__init__(f"Unknown relationship kind: {label!r}")
        self.label = label


class DuplicateRelationshipError(ValidationError):
    """Raised when an assertion already exists for the unordered pair."""


class ConsolidationError(FamilySyncError):
    """Raised when a consolidation transaction fails and is rolled back."""
