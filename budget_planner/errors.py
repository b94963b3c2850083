"""Exception hierarchy shared by the store, the service and the validators."""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for budget planner operations."""


class ValidationError(LedgerError):
    """Input is missing or malformed. Raised before the store is touched."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """Entity does not exist, or belongs to another owner."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(LedgerError):
    """Delete blocked by references, or a unique key already taken."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details: Dict[str, Any] = details


class StoreError(LedgerError):
    """Underlying datastore failure."""
