# buildapp/api/responses.py
"""`{success, data | error, message}` envelope and ORM-to-dict builders."""
from decimal import Decimal
from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def error_body(code: str, message: str, details: Optional[dict] = None) -> dict:
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error, "message": message}


def money(value) -> Optional[float]:
    if value is None:
        return None
    return float(Decimal(str(value)))


def _window(start, end) -> Optional[dict]:
    if start is None and end is None:
        return None
    return {"start": start, "end": end}


def negotiation_view(parent) -> dict:
    return {
        "promised_window": _window(parent.promised_window_start, parent.promised_window_end),
        "proposal": {
            "status": parent.proposal_status,
            "proposed_by": parent.proposed_by,
            "window": _window(parent.proposed_window_start, parent.proposed_window_end),
        },
        "window_agreed_at": parent.window_agreed_at,
    }


def build_rfq_response(rfq, offer_count: Optional[int] = None, recipient=None) -> dict:
    body = {
        "id": rfq.id,
        "buyer_id": rfq.buyer_id,
        "project_id": rfq.project_id,
        "title": rfq.title,
        "line_items": rfq.line_items or [],
        "preferred_window": _window(rfq.preferred_window_start, rfq.preferred_window_end),
        "delivery_address": rfq.delivery_address,
        "additional_notes": rfq.additional_notes,
        "status": rfq.status,
        "expires_at": rfq.expires_at,
        "closed_at": rfq.closed_at,
        "created_at": rfq.created_at,
        "updated_at": rfq.updated_at,
    }
    if offer_count is not None:
        body["offer_count"] = offer_count
    if recipient is not None:
        body["notified_at"] = recipient.notified_at
        body["viewed_at"] = recipient.viewed_at
    else:
        body["recipients"] = [
            {
                "supplier_id": r.supplier_id,
                "notified_at": r.notified_at,
                "viewed_at": r.viewed_at,
            }
            for r in rfq.recipients
        ]
    return body


def build_offer_response(offer, trust_metrics: Optional[dict] = None) -> dict:
    body = {
        "id": offer.id,
        "rfq_id": offer.rfq_id,
        "supplier_id": offer.supplier_id,
        "line_prices": offer.line_prices or [],
        "total_amount": money(offer.total_amount),
        "delivery_fee": money(offer.delivery_fee),
        "delivery_window": _window(offer.delivery_window_start, offer.delivery_window_end),
        "payment_terms": offer.payment_terms,
        "notes": offer.notes,
        "expires_at": offer.expires_at,
        "status": offer.status,
        "accepted_at": offer.accepted_at,
        "rejected_at": offer.rejected_at,
        "rejection_reason": offer.rejection_reason,
        "created_at": offer.created_at,
        "updated_at": offer.updated_at,
    }
    if trust_metrics is not None:
        body["supplier_trust"] = trust_metrics
    return body


def build_offer_version(version) -> dict:
    return {
        "version_number": version.version_number,
        "line_prices": version.line_prices or [],
        "total_amount": money(version.total_amount),
        "delivery_fee": money(version.delivery_fee),
        "delivery_window": _window(version.delivery_window_start, version.delivery_window_end),
        "payment_terms": version.payment_terms,
        "notes": version.notes,
        "status": version.status,
        "created_at": version.created_at,
        "superseded_at": version.superseded_at,
    }


def build_order_response(order, available_actions=None, detail: bool = False) -> dict:
    body = {
        "id": order.id,
        "order_number": order.order_number,
        "buyer_id": order.buyer_id,
        "supplier_id": order.supplier_id,
        "project_id": order.project_id,
        "offer_id": order.offer_id,
        "items": order.items or [],
        "total_amount": money(order.total_amount),
        "delivery_fee": money(order.delivery_fee),
        "tax_amount": money(order.tax_amount),
        "grand_total": money(order.grand_total),
        "pickup_or_delivery": order.pickup_or_delivery,
        "delivery_address": order.delivery_address,
        "payment_terms": order.payment_terms,
        "notes": order.notes,
        "status": order.status,
        "confirmation_deadline": order.confirmation_deadline,
        "confirmed_at": order.confirmed_at,
        "delivered_at": order.delivered_at,
        "completed_at": order.completed_at,
        "cancelled_at": order.cancelled_at,
        "cancellation_reason": order.cancellation_reason,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        **negotiation_view(order),
    }
    if available_actions is not None:
        body["available_actions"] = available_actions
    if detail:
        body["delivery_events"] = [
            {
                "id": e.id,
                "photos": e.photos or [],
                "quantities": e.quantities or [],
                "notes": e.notes,
                "location": e.location,
                "is_partial": e.is_partial,
                "delivered_at": e.delivered_at,
            }
            for e in order.delivery_events
        ]
        body["confirmations"] = [
            {
                "id": c.id,
                "type": c.confirmation_type,
                "confirmed_by": c.confirmed_by_role,
                "delivery_event_id": c.delivery_event_id,
                "dispute_category": c.dispute_category,
                "dispute_reason": c.dispute_reason,
                "evidence_photos": c.evidence_photos or [],
                "created_at": c.created_at,
            }
            for c in order.confirmations
        ]
        body["status_history"] = [
            {
                "old_status": h.old_status,
                "new_status": h.new_status,
                "event": h.event,
                "actor_role": h.actor_role,
                "note": h.note,
                "created_at": h.created_at,
            }
            for h in order.status_history
        ]
    return body


def build_booking_response(booking, now=None) -> dict:
    body = {
        "id": booking.id,
        "booking_number": booking.booking_number,
        "buyer_id": booking.buyer_id,
        "supplier_id": booking.supplier_id,
        "rental_tool_id": booking.rental_tool_id,
        "project_id": booking.project_id,
        "start_date": booking.start_date,
        "end_date": booking.end_date,
        "actual_start_date": booking.actual_start_date,
        "actual_end_date": booking.actual_end_date,
        "rental_duration_days": booking.rental_duration_days,
        "day_rate": money(booking.day_rate),
        "week_rate": money(booking.week_rate),
        "total_rental_amount": money(booking.total_rental_amount),
        "deposit_amount": money(booking.deposit_amount),
        "delivery_fee": money(booking.delivery_fee),
        "late_return_fee": money(booking.late_return_fee),
        "damage_fee": money(booking.damage_fee),
        "pickup_or_delivery": booking.pickup_or_delivery,
        "delivery_address": booking.delivery_address,
        "payment_terms": booking.payment_terms,
        "status": booking.status,
        "has_handover": booking.handover is not None,
        "has_return": booking.rental_return is not None,
        "created_at": booking.created_at,
        **negotiation_view(booking),
    }
    if now is not None:
        body["is_overdue"] = booking.is_overdue(now)
    return body


def build_tool_response(tool) -> dict:
    return {
        "id": tool.id,
        "supplier_id": tool.supplier_id,
        "name": tool.name,
        "category": tool.category,
        "description": tool.description,
        "day_rate": money(tool.day_rate),
        "week_rate": money(tool.week_rate),
        "deposit_amount": money(tool.deposit_amount),
        "delivery_option": tool.delivery_option,
    }
