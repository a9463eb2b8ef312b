"""
Assignment dashboard actions.

Students post questions and pay for them; tutors upload answers. Either
side can raise a dispute. Payment gateways are not called here: the
handlers record the request and the outcome the gateway reports.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from numbers import Real
from typing import Any

from ..exceptions import InvalidTransitionError, ValidationError
from ..records import AttachmentFile, Record, RecordStatus, validate_attachment_file
from ..store import SyncedCollectionStore
from .results import (
    CommandResult,
    require_record,
    require_text,
    require_transition,
    run_command,
    saved_id,
)

PAYMENT_METHODS = frozenset({"stripe", "mpesa"})
MIN_PRICE_PER_PAGE = 3.0


async def post_assignment(
    store: SyncedCollectionStore,
    title: str,
    description: str,
    subject: str = "",
    topic: str = "",
    deadline: datetime | date | str | None = None,
    amount: float = 0,
    files: Iterable[AttachmentFile] = (),
) -> CommandResult:
    """Create a pending assignment and attach its files.

    Files are checked before anything is saved. If storing an attachment
    fails, the assignment stays posted with the files attached so far and
    the failed result carries it.
    """
    progress: list[Record] = []

    async def action() -> Record:
        fields: dict[str, Any] = {
            "title": require_text("title", title),
            "description": require_text("description", description),
            "subject": subject.strip(),
            "topic": topic.strip(),
            "amount": _amount(amount),
            "status": RecordStatus.PENDING,
        }
        uploads = list(files)
        spec = store.spec
        for file in uploads:
            validate_attachment_file(file, spec.max_attachment_bytes, spec.allowed_mime_types)
        if deadline is not None:
            fields["deadline"] = deadline.isoformat() if isinstance(deadline, date) else str(deadline)

        record = await store.save(fields)
        progress.append(record)
        record_id = saved_id(store, record)
        for file in uploads:
            record = await store.append_attachment(record_id, file)
            progress.append(record)
        return record

    return await run_command("post_assignment", action, "Assignment posted.", progress)


def quote_amount(offer: float, pages: int = 1, min_per_page: float = MIN_PRICE_PER_PAGE) -> float:
    """Total to pay: the student's offer or the per-page minimum, whichever is higher."""
    pages = max(int(pages or 1), 1)
    return max(_amount(offer or 0), pages * min_per_page)


async def request_payment(
    store: SyncedCollectionStore,
    record_id: str,
    method: str,
    pages: int = 1,
) -> CommandResult:
    """Record a payment request; the assignment waits for the gateway's answer."""

    async def action() -> Record:
        normalized = (method or "").strip().lower().replace("-", "")
        if normalized not in PAYMENT_METHODS:
            raise ValidationError("payment_method", "must be stripe or mpesa", method)
        record = require_record(store, record_id)
        require_transition(record, RecordStatus.PENDING_PAYMENT)
        return await store.save(
            {
                "id": record_id,
                "status": RecordStatus.PENDING_PAYMENT,
                "payment_method": normalized,
                "pages": max(int(pages or 1), 1),
                "amount_due": quote_amount(record.get("amount", 0), pages),
                "payment_status": "pending",
            }
        )

    return await run_command("request_payment", action, "Payment requested.")


async def record_payment_outcome(
    store: SyncedCollectionStore,
    record_id: str,
    succeeded: bool,
    reference: str | None = None,
) -> CommandResult:
    """Apply the gateway's verdict to an assignment awaiting payment."""

    async def action() -> Record:
        record = require_record(store, record_id)
        target = RecordStatus.IN_PROGRESS if succeeded else RecordStatus.FAILED
        if record.status is not RecordStatus.PENDING_PAYMENT:
            raise InvalidTransitionError(record.status.value, target.value)
        changes: dict[str, Any] = {
            "id": record_id,
            "status": target,
            "payment_status": "completed" if succeeded else "failed",
        }
        if reference:
            changes["payment_reference"] = reference
        if succeeded:
            changes["paid_at"] = datetime.now(UTC).isoformat()
        return await store.save(changes)

    message = "Payment confirmed." if succeeded else "Payment failed. You can try again."
    return await run_command("record_payment_outcome", action, message)


async def upload_answer(
    store: SyncedCollectionStore,
    record_id: str,
    file: AttachmentFile,
) -> CommandResult:
    """Attach a tutor's answer and complete the assignment."""

    async def action() -> Record:
        require_transition(require_record(store, record_id), RecordStatus.COMPLETED)
        record = await store.append_attachment(record_id, file)
        answer = record.attachments[-1]
        return await store.save(
            {
                "id": record_id,
                "answer": {"name": answer.name, "url": answer.url},
                "status": RecordStatus.COMPLETED,
            }
        )

    return await run_command("upload_answer", action, "Answer uploaded.")


async def report_dispute(
    store: SyncedCollectionStore,
    record_id: str,
    reason: str,
) -> CommandResult:
    async def action() -> Record:
        text = require_text("reason", reason)
        require_transition(require_record(store, record_id), RecordStatus.DISPUTE)
        return await store.save(
            {
                "id": record_id,
                "status": RecordStatus.DISPUTE,
                "dispute_reason": text,
            }
        )

    return await run_command("report_dispute", action, "Dispute reported.")


@dataclass
class DashboardStats:
    """Summary cards shown above an assignment list."""

    total: int = 0
    pending: int = 0
    completed: int = 0
    earnings: float = 0.0
    subjects: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "completed": self.completed,
            "earnings": self.earnings,
            "subjects": list(self.subjects),
        }


def dashboard_stats(records: Iterable[Record]) -> DashboardStats:
    stats = DashboardStats()
    subjects: set[str] = set()
    for record in records:
        stats.total += 1
        if record.status in (RecordStatus.PENDING, RecordStatus.PENDING_PAYMENT):
            stats.pending += 1
        elif record.status is RecordStatus.COMPLETED:
            stats.completed += 1
            amount = record.get("amount")
            if isinstance(amount, Real) and not isinstance(amount, bool):
                stats.earnings += float(amount)
        subject = record.get("subject")
        if isinstance(subject, str) and subject.strip():
            subjects.add(subject.strip())
    stats.subjects = sorted(subjects)
    return stats


def _amount(value: Any) -> float | int:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("amount", "must be a number", repr(value))
    if value < 0:
        raise ValidationError("amount", "must not be negative", repr(value))
    return value
