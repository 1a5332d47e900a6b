# buildapp/api/v1/endpoints/rfqs.py
"""Buyer RFQ management, supplier inbox and offer submission."""
import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from buildapp.api import deps
from buildapp.api.responses import (
    build_offer_response,
    build_offer_version,
    build_rfq_response,
    ok,
)
from buildapp.crud import crud_rfq
from buildapp.db.session import get_db
from buildapp.models.supplier import Supplier
from buildapp.schemas.offer import OfferSubmit
from buildapp.schemas.rfq import RFQCreate
from buildapp.schemas.token import TokenPayload
from buildapp.services import offer_ledger, rfq_fanout
from buildapp.services.event_notifier import EventNotifier, get_notifier
from buildapp.services.trust_metrics import TrustMetricsReader, get_trust_metrics_reader

logger = logging.getLogger(__name__)

router = APIRouter(tags=["RFQs"])


def _page_of_rfqs(db: Session, page: dict, recipient_for=None) -> dict:
    counts = crud_rfq.offer_counts(db, [rfq.id for rfq in page["items"]])
    items = []
    for rfq in page["items"]:
        recipient = (
            crud_rfq.get_recipient(db, rfq.id, recipient_for.id) if recipient_for else None
        )
        items.append(build_rfq_response(rfq, counts.get(rfq.id, 0), recipient))
    return {"items": items, "pagination": page["pagination"]}


# ── Buyer ─────────────────────────────────────────────────────────────

@router.post("/rfqs", status_code=status.HTTP_201_CREATED)
def create_rfq(
    rfq_in: RFQCreate,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    rfq = rfq_fanout.create(db, notifier, buyer_id=current_user.sub, data=rfq_in)
    return ok(build_rfq_response(rfq, offer_count=0), "RFQ sent to suppliers")


@router.get("/rfqs")
def list_rfqs(
    params: deps.ListParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    page = crud_rfq.list_for_buyer(db, current_user.sub, **params.as_kwargs())
    return ok(_page_of_rfqs(db, page))


@router.get("/rfqs/{rfq_id}")
def get_rfq(
    rfq_id: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    rfq = rfq_fanout.get_owned(db, buyer_id=current_user.sub, rfq_id=rfq_id)
    return ok(build_rfq_response(rfq, crud_rfq.count_offers(db, rfq.id)))


@router.post("/rfqs/{rfq_id}/close")
def close_rfq(
    rfq_id: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    rfq = rfq_fanout.close(db, notifier, buyer_id=current_user.sub, rfq_id=rfq_id)
    return ok(build_rfq_response(rfq, crud_rfq.count_offers(db, rfq.id)), "RFQ closed")


@router.delete("/rfqs/{rfq_id}")
def delete_rfq(
    rfq_id: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    rfq_fanout.delete(db, buyer_id=current_user.sub, rfq_id=rfq_id)
    return ok({"id": rfq_id}, "RFQ deleted")


@router.get("/rfqs/{rfq_id}/offers")
def list_offers(
    rfq_id: str,
    db: Session = Depends(get_db),
    trust_reader: TrustMetricsReader = Depends(get_trust_metrics_reader),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    rfq_fanout.get_owned(db, buyer_id=current_user.sub, rfq_id=rfq_id)
    offers = offer_ledger.list_for_buyer(db, trust_reader, rfq_id=rfq_id)
    return ok([build_offer_response(offer, trust) for offer, trust in offers])


# ── Supplier ──────────────────────────────────────────────────────────

@router.get("/suppliers/me/rfqs")
def list_supplier_rfqs(
    params: deps.ListParams = Depends(),
    db: Session = Depends(get_db),
    supplier: Supplier = Depends(deps.get_current_supplier),
):
    page = crud_rfq.list_for_supplier(db, supplier.id, **params.as_kwargs())
    return ok(_page_of_rfqs(db, page, recipient_for=supplier))


@router.get("/suppliers/me/rfqs/{rfq_id}")
def view_supplier_rfq(
    rfq_id: str,
    db: Session = Depends(get_db),
    supplier: Supplier = Depends(deps.get_current_supplier),
):
    rfq = rfq_fanout.get_for_recipient(db, supplier=supplier, rfq_id=rfq_id)
    recipient = rfq_fanout.mark_viewed(db, supplier=supplier, rfq_id=rfq_id)
    data = build_rfq_response(rfq, recipient=recipient)
    own_offer = next((o for o in rfq.offers if o.supplier_id == supplier.id), None)
    data["my_offer"] = build_offer_response(own_offer) if own_offer else None
    return ok(data)


@router.post("/rfqs/{rfq_id}/offers")
def submit_offer(
    rfq_id: str,
    offer_in: OfferSubmit,
    response: Response,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    supplier: Supplier = Depends(deps.get_current_supplier),
):
    offer, created = offer_ledger.submit(
        db, notifier, supplier=supplier, rfq_id=rfq_id, data=offer_in
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return ok(
        build_offer_response(offer),
        "Offer submitted" if created else "Offer updated",
    )


@router.get("/rfqs/{rfq_id}/offers/history")
def offer_history(
    rfq_id: str,
    db: Session = Depends(get_db),
    supplier: Supplier = Depends(deps.get_current_supplier),
):
    offer, versions = offer_ledger.history(db, supplier=supplier, rfq_id=rfq_id)
    return ok({
        "current": build_offer_response(offer),
        "versions": [build_offer_version(v) for v in versions],
    })
