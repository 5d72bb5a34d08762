"""
Quote draft lifecycle tests.

Tests:
1-3. State transitions (draft -> created -> edited -> saved)
4-5. Invalid transitions raise
6-7. Attachments queued on a draft and flushed on creation
8.   Rejected attachments never reach the queue
9.   Attachments on a created quote upload immediately
10.  Pricing the draft fields
11.  Draft registry open/get/discard
"""

import pytest

from backend.attachment_store import AttachmentRejected
from backend.quote_draft import (
    CREATED,
    DRAFT,
    EDITED,
    SAVED,
    DraftRegistry,
    InvalidTransition,
    QuoteDraft,
)


class _RecordingUploader:
    """Stands in for the attachment store; remembers every upload."""

    def __init__(self):
        self.calls = []

    def __call__(self, quote_uuid, file_name, content_type, data):
        self.calls.append((quote_uuid, file_name, content_type, data))
        return f"attachments/{quote_uuid}/{len(self.calls)}"


def _sample_draft():
    uploader = _RecordingUploader()
    draft = QuoteDraft({"min_quantity": 2, "materials": []}, uploader=uploader)
    return draft, uploader


# --- Transitions ---

def test_new_draft_is_dirty():
    draft, _ = _sample_draft()
    assert draft.status == DRAFT
    assert draft.uuid is None
    assert draft.is_dirty()


def test_create_edit_save():
    draft, _ = _sample_draft()
    draft.mark_created("q-1")
    assert draft.status == CREATED
    assert not draft.is_dirty()

    draft.edit(product_name="Bracket")
    assert draft.status == EDITED
    assert draft.is_dirty()
    assert draft.fields["product_name"] == "Bracket"

    draft.mark_saved()
    assert draft.status == SAVED
    assert not draft.is_dirty()


def test_editing_saved_quote_makes_it_dirty_again():
    draft, _ = _sample_draft()
    draft.mark_created("q-1")
    draft.mark_saved()
    draft.edit(total_quantity=50)
    assert draft.status == EDITED


def test_cannot_save_a_draft():
    draft, _ = _sample_draft()
    with pytest.raises(InvalidTransition):
        draft.mark_saved()


def test_cannot_create_twice():
    draft, _ = _sample_draft()
    draft.mark_created("q-1")
    with pytest.raises(InvalidTransition):
        draft.mark_created("q-2")


# --- Attachments ---

def test_attachments_queued_until_created():
    draft, uploader = _sample_draft()
    assert draft.add_attachment("drawing.pdf", "application/pdf", b"%PDF-1.4") is None
    assert draft.add_attachment("photo.png", "image/png", b"\x89PNG") is None
    assert uploader.calls == []
    assert len(draft.pending_attachments) == 2


def test_queue_flushed_on_creation():
    draft, uploader = _sample_draft()
    draft.add_attachment("drawing.pdf", "application/pdf", b"%PDF-1.4")
    draft.add_attachment("photo.png", "image/png", b"\x89PNG")

    stored = draft.mark_created("q-1")
    assert [s["storage_key"] for s in stored] == ["attachments/q-1/1", "attachments/q-1/2"]
    assert stored[0] == {
        "file_name": "drawing.pdf",
        "content_type": "application/pdf",
        "size": len(b"%PDF-1.4"),
        "storage_key": "attachments/q-1/1",
    }
    assert [c[1] for c in uploader.calls] == ["drawing.pdf", "photo.png"]
    assert draft.pending_attachments == []
    assert draft.stored_keys == ["attachments/q-1/1", "attachments/q-1/2"]


def test_rejected_attachment_not_queued():
    draft, uploader = _sample_draft()
    with pytest.raises(AttachmentRejected):
        draft.add_attachment("tool.exe", "application/x-msdownload", b"MZ")
    with pytest.raises(AttachmentRejected):
        draft.add_attachment("empty.pdf", "application/pdf", b"")
    assert draft.pending_attachments == []
    draft.mark_created("q-1")
    assert uploader.calls == []


def test_attachment_on_created_quote_uploads_immediately():
    draft, uploader = _sample_draft()
    draft.mark_created("q-7")
    key = draft.add_attachment("notes.txt", "text/plain", b"hello")
    assert key == "attachments/q-7/1"
    assert uploader.calls[0][0] == "q-7"


def test_priced_uses_current_fields():
    draft, _ = _sample_draft()
    draft.edit(materials=[{"name": "Bolt", "purchase_price": 2, "margin_percent": 50, "quantity": 1}])
    assert draft.priced()["total"] == 6


# --- Registry ---

def test_registry_open_get_discard():
    registry = DraftRegistry()
    draft = registry.open({"product_name": "Bracket"}, uploader=_RecordingUploader())
    assert registry.get(draft.draft_id) is draft
    assert draft.summary()["fields"] == {"product_name": "Bracket"}

    assert registry.discard(draft.draft_id) is draft
    assert registry.get(draft.draft_id) is None
    assert registry.discard(draft.draft_id) is None
