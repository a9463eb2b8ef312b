"""
Command results.

Handlers never raise for problems the user can fix or should be told about;
they return a failed CommandResult with a message fit for display. Anything
unexpected propagates.

Some actions save more than once (create, then attach files). A failure
after the first save does not undo it: the failed result carries the record
as last stored, so the caller can show it and retry the missing step.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..exceptions import (
    InvalidTransitionError,
    PersistenceError,
    RecordNotFoundError,
    StudyGladeError,
    ValidationError,
)
from ..records import Record, RecordStatus
from ..store import SyncedCollectionStore

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a dashboard action.

    Attributes:
        ok: True if the action was applied
        record: The record as stored after the action, or as far as a
            failed multi-step action got
        error: The surfaced exception when ``ok`` is False
        message: User-facing summary
    """

    ok: bool
    record: Record | None = None
    error: StudyGladeError | None = None
    message: str = ""

    @classmethod
    def success(cls, record: Record | None, message: str = "") -> CommandResult:
        return cls(ok=True, record=record, message=message)

    @classmethod
    def failure(cls, error: StudyGladeError, record: Record | None = None) -> CommandResult:
        return cls(ok=False, record=record, error=error, message=user_message(error))


def user_message(error: StudyGladeError) -> str:
    if isinstance(error, InvalidTransitionError):
        return f"This item is {error.current.replace('_', ' ')} and cannot be changed that way."
    if isinstance(error, ValidationError):
        return f"Please check {error.field}: {error.reason}."
    if isinstance(error, RecordNotFoundError):
        return "That item no longer exists."
    if isinstance(error, PersistenceError):
        return "Your changes could not be saved on this device. Free some space and try again."
    return error.message


async def run_command(
    name: str,
    action: Callable[[], Awaitable[Record | None]],
    success_message: str = "",
    progress: list[Record] | None = None,
) -> CommandResult:
    """Run a handler body and fold surfaced errors into the result.

    Args:
        progress: Records the action appends after each save; the last one
            is returned with a failure
    """
    try:
        record = await action()
    except (ValidationError, RecordNotFoundError, PersistenceError) as e:
        partial = progress[-1] if progress else None
        if partial is not None:
            logger.warning(f"{name} failed after saving {partial.id}: {e}")
        else:
            logger.info(f"{name} rejected: {e}")
        return CommandResult.failure(e, partial)
    logger.debug(f"{name} succeeded")
    return CommandResult.success(record, success_message)


def require_record(store: SyncedCollectionStore, record_id: str) -> Record:
    """Look up a record in the loaded view."""
    record = store.get(record_id)
    if record is None:
        raise RecordNotFoundError(record_id, store.name)
    return record


def require_transition(record: Record, target: RecordStatus) -> None:
    if not record.status.can_transition_to(target):
        raise InvalidTransitionError(record.status.value, target.value)


def require_text(field: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required")
    return value.strip()


def saved_id(store: SyncedCollectionStore, record: Record) -> str:
    """The id of a record the store has just saved."""
    if not record.id:
        raise RecordNotFoundError("", store.name)
    return record.id
