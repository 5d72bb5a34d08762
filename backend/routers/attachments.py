"""
Quote attachment endpoints.

POST   /api/quotes/{uuid}/attachments                  - upload (type + size checked first)
GET    /api/quotes/{uuid}/attachments                  - list
GET    /api/quotes/{uuid}/attachments/{attachment_uuid} - download
DELETE /api/quotes/{uuid}/attachments/{attachment_uuid} - delete
"""

from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .. import models, schemas
from ..attachment_store import (
    AttachmentRejected,
    delete_attachment,
    read_attachment,
    save_attachment,
    validate_attachment,
)
from ..database import get_db

router = APIRouter(prefix="/quotes", tags=["attachments"])


def _get_quote(db: Session, quote_uuid: str) -> models.Quote:
    quote = db.query(models.Quote).filter(models.Quote.uuid == quote_uuid).first()
    if not quote:
        raise HTTPException(status_code=404, detail="Quote not found")
    return quote


def _get_attachment(db: Session, quote_uuid: str, attachment_uuid: str) -> models.QuoteAttachment:
    attachment = db.query(models.QuoteAttachment).filter(
        models.QuoteAttachment.uuid == attachment_uuid,
        models.QuoteAttachment.quote_uuid == quote_uuid,
    ).first()
    if not attachment:
        raise HTTPException(status_code=404, detail="Attachment not found")
    return attachment


@router.post("/{quote_uuid}/attachments", response_model=schemas.QuoteAttachment)
async def upload_attachment(
    quote_uuid: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    quote = _get_quote(db, quote_uuid)
    content_type = file.content_type or "application/octet-stream"
    file_name = file.filename or "attachment"

    # Reject by type before reading the body
    try:
        validate_attachment(file_name, content_type, 1)
    except AttachmentRejected as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = await file.read()
    try:
        storage_key = save_attachment(quote.uuid, file_name, content_type, data)
    except AttachmentRejected as e:
        raise HTTPException(status_code=400, detail=str(e))

    attachment = models.QuoteAttachment(
        quote_uuid=quote.uuid,
        file_name=file_name,
        content_type=content_type,
        size=len(data),
        storage_key=storage_key,
    )
    db.add(attachment)
    db.commit()
    db.refresh(attachment)
    return attachment


@router.get("/{quote_uuid}/attachments", response_model=List[schemas.QuoteAttachment])
def list_attachments(quote_uuid: str, db: Session = Depends(get_db)):
    quote = _get_quote(db, quote_uuid)
    return quote.attachments


@router.get("/{quote_uuid}/attachments/{attachment_uuid}")
def download_attachment(quote_uuid: str, attachment_uuid: str, db: Session = Depends(get_db)):
    attachment = _get_attachment(db, quote_uuid, attachment_uuid)
    try:
        data = read_attachment(attachment.storage_key)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Attachment file missing from storage")
    return Response(
        content=data,
        media_type=attachment.content_type,
        headers={"Content-Disposition": f'inline; filename="{attachment.file_name}"'},
    )


@router.delete("/{quote_uuid}/attachments/{attachment_uuid}")
def remove_attachment(quote_uuid: str, attachment_uuid: str, db: Session = Depends(get_db)):
    attachment = _get_attachment(db, quote_uuid, attachment_uuid)
    storage_key = attachment.storage_key
    db.delete(attachment)
    db.commit()
    delete_attachment(storage_key)
    return {"ok": True}
