import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from skilllink.errors import FlowStateError, PaymentError
from skilllink.models import BookingFlow, PaymentConfirmation
from skilllink.services.flow_store import FlowStore, flow_store

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "succeeded"


@dataclass
class PaymentOutcome:
    flow: BookingFlow
    already_confirmed: bool = False


def _is_confirmed(flow: BookingFlow) -> bool:
    return flow.state == "complete" and flow.payment_confirmed_at is not None


class PaymentFinalizer:
    def __init__(self, store: FlowStore):
        self._store = store

    def on_payment_confirmed(self, client_key: str, flow_id: str, confirmation: PaymentConfirmation) -> PaymentOutcome:
        """Close the payment step of a paid booking.

        Only an explicit ``succeeded`` signal for the workflow's own booking
        counts. Repeated confirmations return the completed workflow with
        ``already_confirmed`` set instead of acknowledging twice.
        """
        if confirmation.status != PAYMENT_SUCCEEDED:
            raise PaymentError(f"Payment status {confirmation.status!r} is not a confirmation.")
        flow = self._store.get(client_key, flow_id)
        if flow.booking is None or str(flow.booking.id) != str(confirmation.booking_id):
            raise PaymentError("Payment confirmation does not match this booking.")
        if _is_confirmed(flow):
            return PaymentOutcome(flow=flow, already_confirmed=True)

        try:
            flow = self._store.transition(
                client_key,
                flow_id,
                "complete",
                step="payment_confirmed",
                active_dialog="none",
                updates={
                    "payment_confirmed_at": datetime.now(timezone.utc).isoformat(),
                    "payment_reference": confirmation.payment_reference,
                },
            )
        except FlowStateError:
            current = self._store.get(client_key, flow_id)
            if _is_confirmed(current):
                return PaymentOutcome(flow=current, already_confirmed=True)
            raise
        logger.info("Payment completed for booking %s", confirmation.booking_id)
        return PaymentOutcome(flow=flow)


payment_finalizer = PaymentFinalizer(flow_store)
