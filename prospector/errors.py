"""Exception hierarchy shared by the query layer, handlers and HTTP routes.

The messages carried by these exceptions are user-facing; the HTTP layer
returns them verbatim and picks the status code from the exception type.
"""

from __future__ import annotations


class ProspectorError(Exception):
    """Base class for all Prospector errors."""


class ValidationError(ProspectorError, ValueError):
    """Input is missing required fields or is otherwise malformed."""


class ConflictError(ProspectorError):
    """A uniqueness rule would be violated."""


class NotFoundError(ProspectorError, LookupError):
    """A row looked up by id or path does not exist."""


class PersistenceError(ProspectorError, RuntimeError):
    """A write appeared to succeed but the row could not be read back."""


class TransactionError(ProspectorError, RuntimeError):
    """A transaction could not be started."""


def vault_not_found(vault_id: int) -> NotFoundError:
    return NotFoundError(f"No vault found with ID {vault_id}")
