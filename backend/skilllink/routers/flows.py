from typing import Optional

from fastapi import APIRouter, Depends

from skilllink.auth import current_session, resolve_client_key
from skilllink.models import BookingPayload, FlowView, PaymentConfirmation, Session
from skilllink.notices import booking_notices, payment_notices
from skilllink.services.booking_orchestrator import booking_orchestrator
from skilllink.services.flow_store import flow_store
from skilllink.services.payment_finalizer import payment_finalizer

router = APIRouter(prefix="/flows", tags=["flows"])


@router.get("/{flow_id}", response_model=FlowView)
def get_flow(flow_id: str, client_key: Optional[str] = Depends(resolve_client_key)):
    return FlowView(flow=flow_store.get(client_key or "", flow_id))


@router.post("/{flow_id}/dialog/close", response_model=FlowView)
def close_dialog(flow_id: str, client_key: Optional[str] = Depends(resolve_client_key)):
    return FlowView(flow=booking_orchestrator.close_dialog(client_key or "", flow_id))


@router.post("/{flow_id}/booking", response_model=FlowView)
async def booking_created(
    flow_id: str,
    booking: BookingPayload,
    client_key: Optional[str] = Depends(resolve_client_key),
    session: Optional[Session] = Depends(current_session),
):
    outcome = await booking_orchestrator.handle_booking_created(client_key or "", flow_id, booking, session)
    return FlowView(flow=outcome.flow, notices=booking_notices(outcome))


@router.post("/{flow_id}/payment/confirm", response_model=FlowView)
def confirm_payment(
    flow_id: str,
    confirmation: PaymentConfirmation,
    client_key: Optional[str] = Depends(resolve_client_key),
):
    outcome = payment_finalizer.on_payment_confirmed(client_key or "", flow_id, confirmation)
    return FlowView(
        flow=outcome.flow,
        notices=payment_notices(outcome),
        already_confirmed=outcome.already_confirmed,
    )
