"""
Quote editing lifecycle.

    draft ──mark_created(uuid)──▶ created ──edit()──▶ edited ──mark_saved()──▶ saved
                                     │                   ▲                      │
                                     └───mark_saved()────┼──────────────────────┘
                                                         └──────edit()──────────┘

A draft has no uuid yet, so attachments added to it are validated and queued.
The queue is flushed to the attachment store right after the quote is created.
Open drafts live in `drafts` until the quote is created or the draft discarded.
"""

import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional

from .attachment_store import save_attachment, validate_attachment
from .calculators.quote_pricing import price_quote

logger = logging.getLogger(__name__)

DRAFT = "draft"
CREATED = "created"
EDITED = "edited"
SAVED = "saved"


class InvalidTransition(ValueError):
    pass


class QuoteDraft:
    """In-memory quote being edited, plus attachments waiting for a uuid."""

    def __init__(self, fields: Optional[Dict] = None, uploader: Optional[Callable] = None):
        self.draft_id = uuid.uuid4().hex
        self.status = DRAFT
        self.uuid: Optional[str] = None
        self.fields: Dict = dict(fields or {})
        self.pending_attachments: List[Dict] = []
        self.stored_keys: List[str] = []
        self._uploader = uploader or save_attachment

    def edit(self, **changes) -> None:
        self.fields.update(changes)
        if self.status in (CREATED, SAVED):
            self.status = EDITED

    def add_attachment(self, file_name: str, content_type: str, data: bytes) -> Optional[str]:
        """
        Validate a file, then upload it (quote exists) or queue it (draft).
        Returns the storage key, or None when queued.
        Raises AttachmentRejected before anything is queued or uploaded.
        """
        validate_attachment(file_name, content_type, len(data))
        if self.uuid is None:
            self.pending_attachments.append({
                "file_name": file_name,
                "content_type": content_type,
                "data": data,
            })
            return None
        key = self._uploader(self.uuid, file_name, content_type, data)
        self.stored_keys.append(key)
        return key

    def mark_created(self, quote_uuid: str) -> List[Dict]:
        """
        Storage assigned a uuid: flush queued attachments.

        Returns one {file_name, content_type, size, storage_key} per
        flushed file, in the order they were queued.
        """
        if self.status != DRAFT:
            raise InvalidTransition(f"Cannot create a quote in state '{self.status}'")
        self.uuid = quote_uuid
        self.status = CREATED

        flushed = []
        while self.pending_attachments:
            item = self.pending_attachments[0]
            key = self._uploader(quote_uuid, item["file_name"], item["content_type"], item["data"])
            self.pending_attachments.pop(0)
            flushed.append({
                "file_name": item["file_name"],
                "content_type": item["content_type"],
                "size": len(item["data"]),
                "storage_key": key,
            })
        if flushed:
            logger.info("Flushed %d queued attachments to quote %s", len(flushed), quote_uuid)
        self.stored_keys.extend(f["storage_key"] for f in flushed)
        return flushed

    def mark_saved(self) -> None:
        if self.status not in (CREATED, EDITED):
            raise InvalidTransition(f"Cannot save a quote in state '{self.status}'")
        self.status = SAVED

    def is_dirty(self) -> bool:
        return self.status in (DRAFT, EDITED)

    def priced(self) -> Dict:
        return price_quote(self.fields)

    def summary(self) -> Dict:
        return {
            "draft_id": self.draft_id,
            "status": self.status,
            "quote_uuid": self.uuid,
            "dirty": self.is_dirty(),
            "fields": self.fields,
            "pending_attachments": [
                {"file_name": p["file_name"], "content_type": p["content_type"], "size": len(p["data"])}
                for p in self.pending_attachments
            ],
        }


class DraftRegistry:
    """Open drafts by id, for the lifetime of the process."""

    def __init__(self):
        self._drafts: Dict[str, QuoteDraft] = {}
        self._lock = threading.Lock()

    def open(self, fields: Optional[Dict] = None, uploader: Optional[Callable] = None) -> QuoteDraft:
        draft = QuoteDraft(fields, uploader=uploader)
        with self._lock:
            self._drafts[draft.draft_id] = draft
        return draft

    def get(self, draft_id: str) -> Optional[QuoteDraft]:
        with self._lock:
            return self._drafts.get(draft_id)

    def discard(self, draft_id: str) -> Optional[QuoteDraft]:
        with self._lock:
            return self._drafts.pop(draft_id, None)


drafts = DraftRegistry()
