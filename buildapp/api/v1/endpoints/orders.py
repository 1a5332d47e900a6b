# buildapp/api/v1/endpoints/orders.py
"""Direct orders, order lookup, window negotiation and fulfilment."""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session

from buildapp.api import deps
from buildapp.api.responses import build_order_response, ok
from buildapp.core.errors import NotFoundError
from buildapp.core.limiter import limiter
from buildapp.crud import crud_order, crud_party
from buildapp.db.session import get_db
from buildapp.models.supplier import Supplier
from buildapp.schemas.order import (
    CancelRequest,
    ConfirmReceiptRequest,
    DeliveryRecord,
    DirectOrderCreate,
    DisputeRequest,
)
from buildapp.schemas.token import TokenPayload
from buildapp.schemas.window import WindowProposalRequest
from buildapp.services import direct_order_factory, order_fulfillment, window_negotiation
from buildapp.services.event_notifier import EventNotifier, get_notifier
from buildapp.services.window_negotiation import ORDER_WINDOWS
from buildapp.utils.time import utcnow
from buildapp.utils.windows import available_windows

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])


# ── Helpers ───────────────────────────────────────────────────────────

def _get_order_for_party(db: Session, order_ref: str, current_user: TokenPayload,
                         supplier: Optional[Supplier]):
    """Orders the caller is not a party to are reported as missing."""
    order = crud_order.get_by_ref(db, order_ref)
    actor = order_fulfillment.party_for(order, current_user.sub, supplier) if order else None
    if actor is None:
        raise NotFoundError("Order not found")
    return order, actor


def _order_data(order, detail: bool = False) -> dict:
    return build_order_response(
        order,
        available_actions=order_fulfillment.ORDER_TRANSITIONS.events_from(order.status),
        detail=detail,
    )


# ── Orders ────────────────────────────────────────────────────────────

@router.post("/orders/direct", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_direct_order(
    request: Request,
    order_in: DirectOrderCreate,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    order = direct_order_factory.create(db, notifier, buyer_id=current_user.sub, data=order_in)
    return ok(_order_data(order), f"Order {order.order_number} placed")


@router.get("/orders")
def list_orders(
    params: deps.ListParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    if current_user.role == "supplier":
        if supplier is None:
            raise NotFoundError("Supplier profile not found")
        page = crud_order.list_for_supplier(db, supplier.id, **params.as_kwargs())
    else:
        page = crud_order.list_for_buyer(db, current_user.sub, **params.as_kwargs())
    return ok({
        "items": [_order_data(order) for order in page["items"]],
        "pagination": page["pagination"],
    })


@router.get("/orders/{order_ref}")
def get_order(
    order_ref: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, _ = _get_order_for_party(db, order_ref, current_user, supplier)
    return ok(_order_data(order, detail=True))


@router.get("/suppliers/{supplier_id}/available-windows")
def supplier_available_windows(
    supplier_id: str,
    days: int = Query(7, ge=1, le=30),
    tz_offset_minutes: int = Query(0, ge=-720, le=840),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    if crud_party.get_supplier(db, supplier_id) is None:
        raise NotFoundError("Supplier not found")
    windows = available_windows(utcnow(), days=days, tz_offset_minutes=tz_offset_minutes)
    return ok({"supplier_id": supplier_id, "windows": windows})


# ── Window negotiation ───────────────────────────────────────────────

@router.post("/orders/{order_ref}/propose-window")
def propose_window(
    order_ref: str,
    window_in: WindowProposalRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = window_negotiation.propose(
        db, notifier, ORDER_WINDOWS, order, actor=actor,
        window_start=window_in.window_start, window_end=window_in.window_end,
    )
    return ok(_order_data(order), "Window proposed")


@router.post("/orders/{order_ref}/counter-propose-window")
def counter_propose_window(
    order_ref: str,
    window_in: WindowProposalRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = window_negotiation.counter_propose(
        db, notifier, ORDER_WINDOWS, order, actor=actor,
        window_start=window_in.window_start, window_end=window_in.window_end,
    )
    return ok(_order_data(order), "Counter-proposal sent")


@router.post("/orders/{order_ref}/accept-window")
def accept_window(
    order_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = window_negotiation.accept(db, notifier, ORDER_WINDOWS, order, actor=actor)
    return ok(_order_data(order), "Window accepted")


@router.post("/orders/{order_ref}/reject-window")
def reject_window(
    order_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = window_negotiation.reject(db, notifier, ORDER_WINDOWS, order, actor=actor)
    return ok(_order_data(order), "Window rejected")


@router.post("/orders/{order_ref}/confirm-scheduled-time")
def confirm_scheduled_time(
    order_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = window_negotiation.confirm_scheduled_time(db, notifier, order=order, actor=actor)
    return ok(_order_data(order), "Scheduled time confirmed")


# ── Fulfilment ────────────────────────────────────────────────────────

@router.post("/orders/{order_ref}/start-fulfillment")
def start_fulfillment(
    order_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = order_fulfillment.start_fulfillment(db, notifier, order=order, actor=actor)
    return ok(_order_data(order), "Fulfilment started")


@router.post("/orders/{order_ref}/deliveries", status_code=status.HTTP_201_CREATED)
def record_delivery(
    order_ref: str,
    delivery_in: DeliveryRecord,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order, event = order_fulfillment.record_delivery(
        db, notifier, order=order, actor=actor, data=delivery_in
    )
    data = _order_data(order, detail=True)
    data["delivery_event_id"] = event.id
    message = "Partial delivery recorded" if event.is_partial else "Delivery recorded"
    return ok(data, message)


@router.post("/orders/{order_ref}/confirm-pickup")
def confirm_pickup(
    order_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = order_fulfillment.confirm_pickup(db, notifier, order=order, actor=actor)
    return ok(_order_data(order), "Pickup confirmed")


@router.post("/orders/{order_ref}/confirm")
def confirm_receipt(
    order_ref: str,
    confirm_in: Optional[ConfirmReceiptRequest] = Body(None),
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = order_fulfillment.confirm_receipt(
        db, notifier, order=order, actor=actor,
        delivery_event_id=confirm_in.delivery_event_id if confirm_in else None,
    )
    return ok(_order_data(order), "Receipt confirmed")


@router.post("/orders/{order_ref}/dispute")
def dispute_order(
    order_ref: str,
    dispute_in: DisputeRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = order_fulfillment.dispute(db, notifier, order=order, actor=actor, data=dispute_in)
    return ok(_order_data(order), "Dispute raised")


@router.post("/orders/{order_ref}/cancel")
def cancel_order(
    order_ref: str,
    cancel_in: CancelRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    order, actor = _get_order_for_party(db, order_ref, current_user, supplier)
    order = order_fulfillment.cancel(
        db, notifier, order=order, actor=actor, reason=cancel_in.reason
    )
    return ok(_order_data(order), "Order cancelled")
