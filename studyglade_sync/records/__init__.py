"""
Record model.

Canonical record schema shared by every collection, plus the single
normalization boundary for data arriving from the API or local storage.
"""

from .types import (
    RESERVED_FIELDS,
    Attachment,
    AttachmentFile,
    Record,
    RecordStatus,
    normalize_record_data,
    parse_timestamp,
    unwrap_record,
    unwrap_record_list,
)
from .validation import validate_attachment_file, validate_payload, validate_record

__all__ = [
    "Attachment",
    "AttachmentFile",
    "Record",
    "RecordStatus",
    "RESERVED_FIELDS",
    "normalize_record_data",
    "parse_timestamp",
    "unwrap_record",
    "unwrap_record_list",
    "validate_attachment_file",
    "validate_payload",
    "validate_record",
]
