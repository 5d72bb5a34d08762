"""
Quote drafts - a quote being filled in before it has a uuid.

POST   /api/quotes/drafts                          - open a draft
GET    /api/quotes/drafts/{draft_id}               - status, fields, queued files
PUT    /api/quotes/drafts/{draft_id}               - update draft fields
GET    /api/quotes/drafts/{draft_id}/pricing       - priced preview of the draft fields
POST   /api/quotes/drafts/{draft_id}/attachments   - validate and queue a file
DELETE /api/quotes/drafts/{draft_id}               - discard the draft and its queue

Queued files are uploaded when POST /api/quotes is called with the draft_id.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, File, HTTPException, UploadFile

from ..attachment_store import AttachmentRejected
from ..quote_draft import QuoteDraft, drafts

router = APIRouter(prefix="/quotes/drafts", tags=["quote-drafts"])


def _get_draft(draft_id: str) -> QuoteDraft:
    draft = drafts.get(draft_id)
    if not draft:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft


@router.post("")
def open_draft(fields: Optional[Dict[str, Any]] = Body(default=None)):
    return drafts.open(fields).summary()


@router.get("/{draft_id}")
def get_draft(draft_id: str):
    return _get_draft(draft_id).summary()


@router.put("/{draft_id}")
def edit_draft(draft_id: str, changes: Dict[str, Any] = Body(...)):
    draft = _get_draft(draft_id)
    draft.edit(**changes)
    return draft.summary()


@router.get("/{draft_id}/pricing")
def get_draft_pricing(draft_id: str):
    return _get_draft(draft_id).priced()


@router.post("/{draft_id}/attachments")
async def queue_draft_attachment(draft_id: str, file: UploadFile = File(...)):
    draft = _get_draft(draft_id)
    content_type = file.content_type or "application/octet-stream"
    file_name = file.filename or "attachment"
    data = await file.read()
    try:
        draft.add_attachment(file_name, content_type, data)
    except AttachmentRejected as e:
        raise HTTPException(status_code=400, detail=str(e))
    return draft.summary()


@router.delete("/{draft_id}")
def discard_draft(draft_id: str):
    _get_draft(draft_id)
    drafts.discard(draft_id)
    return {"ok": True}
