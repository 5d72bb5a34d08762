from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
import logging
from .. import models, schemas
from ..attachment_store import delete_attachment
from ..calculators.quote_pricing import price_quote
from ..database import get_db
from ..quote_draft import DRAFT, QuoteDraft, drafts
from ..quote_numbers import issue_quote_number, peek_next_quote_number

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotes", tags=["quotes"])

MAX_PAGE_SIZE = 100


def _get_quote(db: Session, quote_uuid: str) -> models.Quote:
    quote = db.query(models.Quote).filter(models.Quote.uuid == quote_uuid).first()
    if not quote:
        raise HTTPException(status_code=404, detail="Quote not found")
    return quote


def _apply_lines(quote: models.Quote, data: schemas.QuoteBase) -> None:
    """
    Replace the quote's line items with the submitted ones, in order.
    Lines submitted with a known uuid keep it.
    """
    known_materials = {m.uuid: m for m in quote.materials}
    materials = []
    for position, item in enumerate(data.materials):
        fields = item.model_dump(exclude={"uuid"})
        line = known_materials.get(item.uuid) or models.QuoteMaterial()
        for field, value in fields.items():
            setattr(line, field, value)
        line.position = position
        materials.append(line)
    quote.materials = materials

    known_activities = {a.uuid: a for a in quote.production_activities}
    activities = []
    for position, item in enumerate(data.production_activities):
        fields = item.model_dump(exclude={"uuid"})
        line = known_activities.get(item.uuid) or models.QuoteProductionActivity()
        for field, value in fields.items():
            setattr(line, field, value)
        line.position = position
        activities.append(line)
    quote.production_activities = activities


def calculate_totals(quote: models.Quote) -> dict:
    """Price the stored line items and refresh quote.total_price."""
    priced = price_quote(_pricing_input(quote))
    quote.total_price = priced["total"]
    return priced


def _pricing_input(q: models.Quote) -> dict:
    return {
        "min_quantity": q.min_quantity,
        "total_quantity": q.total_quantity,
        "materials": [_material_to_dict(m) for m in q.materials],
        "production_activities": [_activity_to_dict(a) for a in q.production_activities],
    }


def _flush_draft(db: Session, draft: QuoteDraft, quote: models.Quote) -> None:
    """Upload the draft's queued files to the new quote and record them."""
    for stored in draft.mark_created(quote.uuid):
        db.add(models.QuoteAttachment(quote_uuid=quote.uuid, **stored))
    db.commit()
    draft.mark_saved()
    drafts.discard(draft.draft_id)


# --- Endpoints ---

@router.get("/next-number", response_model=schemas.NextQuoteNumber)
def get_next_quote_number(db: Session = Depends(get_db)):
    return peek_next_quote_number(db)


@router.post("")
def create_quote(data: schemas.QuoteCreate, db: Session = Depends(get_db)):
    draft = None
    if data.draft_id:
        draft = drafts.get(data.draft_id)
        if draft is None:
            raise HTTPException(status_code=404, detail="Draft not found")
        if draft.status != DRAFT:
            raise HTTPException(status_code=409, detail="Draft already turned into a quote")

    now = datetime.utcnow()
    upcoming = peek_next_quote_number(db, now)
    if not data.document_number or data.document_number == upcoming["next_quote_number"]:
        document_number = issue_quote_number(db, now)
    else:
        document_number = data.document_number

    quote = models.Quote(
        document_number=document_number,
        contractor_code=data.contractor_code,
        contractor_name=data.contractor_name,
        product_code=data.product_code,
        product_name=data.product_name,
        min_quantity=data.min_quantity,
        total_quantity=data.total_quantity,
    )
    _apply_lines(quote, data)
    calculate_totals(quote)
    db.add(quote)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Quote number {document_number} already exists")
    db.refresh(quote)
    if draft is not None:
        _flush_draft(db, draft, quote)
        db.refresh(quote)
    logger.info("Created quote %s (%s)", quote.document_number, quote.uuid)
    return _quote_to_dict(quote)


@router.get("")
def list_quotes(page: int = 0, size: int = 20, search: Optional[str] = None, db: Session = Depends(get_db)):
    page = max(0, page)
    size = min(MAX_PAGE_SIZE, max(1, size))
    query = db.query(models.Quote)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            models.Quote.document_number.ilike(pattern),
            models.Quote.contractor_code.ilike(pattern),
            models.Quote.contractor_name.ilike(pattern),
            models.Quote.product_code.ilike(pattern),
            models.Quote.product_name.ilike(pattern),
        ))
    total = query.count()
    quotes = query.order_by(models.Quote.created_at.desc()).offset(page * size).limit(size).all()
    total_pages = (total + size - 1) // size
    return {
        "content": [_quote_summary(q) for q in quotes],
        "total_elements": total,
        "total_pages": total_pages,
        "number": page,
        "size": size,
        "first": page == 0,
        "last": page >= total_pages - 1,
    }


@router.get("/{quote_uuid}")
def get_quote(quote_uuid: str, db: Session = Depends(get_db)):
    return _quote_to_dict(_get_quote(db, quote_uuid))


@router.get("/{quote_uuid}/pricing")
def get_quote_pricing(quote_uuid: str, db: Session = Depends(get_db)):
    """Full priced breakdown per line, per section and per unit."""
    quote = _get_quote(db, quote_uuid)
    priced = price_quote(_pricing_input(quote))
    priced["quote_uuid"] = quote.uuid
    priced["document_number"] = quote.document_number
    return priced


@router.put("/{quote_uuid}")
def update_quote(quote_uuid: str, data: schemas.QuoteUpdate, db: Session = Depends(get_db)):
    if data.uuid and data.uuid != quote_uuid:
        raise HTTPException(status_code=400, detail="uuid in body does not match the URL")
    quote = _get_quote(db, quote_uuid)
    if data.document_number:
        quote.document_number = data.document_number
    for field in ("contractor_code", "contractor_name", "product_code", "product_name",
                  "min_quantity", "total_quantity"):
        setattr(quote, field, getattr(data, field))
    _apply_lines(quote, data)
    calculate_totals(quote)
    quote.updated_at = datetime.utcnow()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Quote number {data.document_number} already exists")
    db.refresh(quote)
    return _quote_to_dict(quote)


@router.delete("/{quote_uuid}")
def delete_quote(quote_uuid: str, db: Session = Depends(get_db)):
    quote = _get_quote(db, quote_uuid)
    keys = [a.storage_key for a in quote.attachments]
    db.delete(quote)
    db.commit()
    for key in keys:
        try:
            delete_attachment(key)
        except OSError as e:
            logger.warning("Could not remove attachment %s of deleted quote %s: %s", key, quote_uuid, e)
    return {"ok": True}


def _quote_summary(q: models.Quote) -> dict:
    return {
        "uuid": q.uuid,
        "document_number": q.document_number,
        "contractor_code": q.contractor_code,
        "contractor_name": q.contractor_name,
        "product_code": q.product_code,
        "product_name": q.product_name,
        "min_quantity": q.min_quantity,
        "total_quantity": q.total_quantity,
        "total_price": q.total_price,
        "created_at": q.created_at.isoformat() if q.created_at else None,
        "updated_at": q.updated_at.isoformat() if q.updated_at else None,
    }


def _quote_to_dict(q: models.Quote) -> dict:
    result = _quote_summary(q)
    result["materials"] = [_material_to_dict(m) for m in q.materials]
    result["production_activities"] = [_activity_to_dict(a) for a in q.production_activities]
    return result


def _material_to_dict(m: models.QuoteMaterial) -> dict:
    return {
        "uuid": m.uuid,
        "name": m.name,
        "purchase_price": m.purchase_price,
        "margin_percent": m.margin_percent,
        "margin_pln": m.margin_pln,
        "quantity": m.quantity,
        "ignore_min_quantity": bool(m.ignore_min_quantity),
    }


def _activity_to_dict(a: models.QuoteProductionActivity) -> dict:
    return {
        "uuid": a.uuid,
        "name": a.name,
        "work_time_hours": a.work_time_hours,
        "work_time_minutes": a.work_time_minutes,
        "price": a.price,
        "margin_percent": a.margin_percent,
        "margin_pln": a.margin_pln,
        "ignore_min_quantity": bool(a.ignore_min_quantity),
    }
