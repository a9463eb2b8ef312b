"""
Durable local persistence.

String-blob key-value adapter on disk, the collection stored on top of it,
and the in-memory registry for attachments uploaded in local mode.
"""

from .adapter import LocalDurableAdapter
from .blobs import LocalBlobRegistry
from .collection import LocalCollection, collection_key

__all__ = [
    "LocalDurableAdapter",
    "LocalCollection",
    "LocalBlobRegistry",
    "collection_key",
]
