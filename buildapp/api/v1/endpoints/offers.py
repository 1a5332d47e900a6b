# buildapp/api/v1/endpoints/offers.py
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from buildapp.api import deps
from buildapp.api.responses import build_offer_response, build_order_response, ok
from buildapp.db.session import get_db
from buildapp.models.supplier import Supplier
from buildapp.schemas.offer import OfferReject
from buildapp.schemas.token import TokenPayload
from buildapp.services import acceptance_arbiter, offer_ledger
from buildapp.services.event_notifier import EventNotifier, get_notifier

router = APIRouter()


@router.post("/{offer_id}/accept")
def accept_offer(
    offer_id: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    order = acceptance_arbiter.accept(db, notifier, buyer_id=current_user.sub, offer_id=offer_id)
    return ok(build_order_response(order), f"Order {order.order_number} created")


@router.post("/{offer_id}/reject")
def reject_offer(
    offer_id: str,
    reject_in: Optional[OfferReject] = Body(None),
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    offer = acceptance_arbiter.reject(
        db, notifier,
        buyer_id=current_user.sub,
        offer_id=offer_id,
        reason=reject_in.reason if reject_in else None,
    )
    return ok(build_offer_response(offer), "Offer rejected")


@router.post("/{offer_id}/withdraw")
def withdraw_offer(
    offer_id: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    supplier: Supplier = Depends(deps.get_current_supplier),
):
    offer = offer_ledger.withdraw(db, notifier, supplier=supplier, offer_id=offer_id)
    return ok(build_offer_response(offer), "Offer withdrawn")
