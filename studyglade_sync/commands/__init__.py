"""
Dashboard command handlers.

UI-independent handlers for the student, tutor and documents dashboards.
Each takes a store, applies one action and returns a CommandResult.
"""

from .assignments import (
    MIN_PRICE_PER_PAGE,
    PAYMENT_METHODS,
    DashboardStats,
    dashboard_stats,
    post_assignment,
    quote_amount,
    record_payment_outcome,
    report_dispute,
    request_payment,
    upload_answer,
)
from .documents import (
    DEFAULT_CATEGORIES,
    DEFAULT_SUBJECTS,
    available_filters,
    filter_documents,
    popular_documents,
    recent_documents,
    record_download,
    upload_document,
)
from .results import CommandResult, run_command, user_message

__all__ = [
    # Results
    "CommandResult",
    "run_command",
    "user_message",
    # Assignments
    "MIN_PRICE_PER_PAGE",
    "PAYMENT_METHODS",
    "DashboardStats",
    "dashboard_stats",
    "post_assignment",
    "quote_amount",
    "record_payment_outcome",
    "report_dispute",
    "request_payment",
    "upload_answer",
    # Documents
    "DEFAULT_CATEGORIES",
    "DEFAULT_SUBJECTS",
    "available_filters",
    "filter_documents",
    "popular_documents",
    "recent_documents",
    "record_download",
    "upload_document",
]
