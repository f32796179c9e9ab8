"""Domain errors. Raised by value objects, entities and the search engine."""


class DomainError(Exception):
    """Base class for all agenda domain errors."""


class InvalidArgument(DomainError, ValueError):
    """Input rejected by validation before touching the store."""


class NotFound(DomainError, LookupError):
    """A referenced record does not exist."""


class ContactNotFound(NotFound):
    def __init__(self, contact_id: str) -> None:
        super().__init__(f"Contact not found: {contact_id}")
        self.contact_id = contact_id


class CursorNotFound(NotFound):
    """The pagination cursor points to a document that no longer exists."""

    def __init__(self, cursor: str) -> None:
        super().__init__(f"Cursor does not reference an existing contact: {cursor}")
        self.cursor = cursor


class Unauthorized(DomainError):
    """The caller does not own the contact it tries to change."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Not allowed to {action} this contact.")
        self.action = action
