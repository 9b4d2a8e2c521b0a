import logging
from dataclasses import dataclass
from typing import Optional

from skilllink.errors import BackendError, FlowStateError, NotifyError, PermissionDeniedError
from skilllink.models import (
    BookingFlow,
    BookingPayload,
    FlowKind,
    NotificationData,
    NotificationRecord,
    RecordId,
    Session,
    UserProfile,
)
from skilllink.services.backend_client import BackendClient, backend_client
from skilllink.services.flow_store import FlowStore, flow_store

logger = logging.getLogger(__name__)

FALLBACK_REQUESTER_NAME = "Someone"


def derive_notification(booking: BookingPayload, provider_id: RecordId, requester_name: str) -> NotificationRecord:
    if booking.is_skill_swap:
        notification_type = "skill_swap_request"
        title = "New Skill Swap Request"
        message = f"{requester_name} has requested a skill swap session for {booking.service_name}"
    else:
        notification_type = "new_booking"
        title = "New Booking Request"
        message = f"{requester_name} has requested to book a session for {booking.service_name}"
    return NotificationRecord(
        user_id=provider_id,
        type=notification_type,
        title=title,
        message=message,
        data=NotificationData(booking_id=booking.id, is_skill_swap=booking.is_skill_swap),
    )


@dataclass
class BookingOutcome:
    flow: BookingFlow
    notified: bool


class BookingOrchestrator:
    """Runs what happens after a booking dialog reports success.

    Booking creation itself belongs to the dialog. From here on the booking is
    valid no matter what: the provider notification is best effort, and only
    paid bookings continue to the payment step once that notification resolved.
    """

    def __init__(self, backend: BackendClient, store: FlowStore):
        self._backend = backend
        self._store = store

    def open_flow(
        self,
        client_key: str,
        provider_id: RecordId,
        kind: FlowKind,
        viewer: Optional[UserProfile] = None,
    ) -> BookingFlow:
        if kind == "skill_swap" and not (viewer and viewer.skills):
            raise PermissionDeniedError("Add a skill to your profile before proposing a skill swap.")
        return self._store.create(
            client_key=client_key,
            provider_id=provider_id,
            kind=kind,
            requester_name=viewer.name if viewer else None,
        )

    def close_dialog(self, client_key: str, flow_id: str) -> BookingFlow:
        return self._store.set_dialog(client_key, flow_id, "none", step="dialog_closed")

    async def _persist_notification(self, notification: NotificationRecord, session: Optional[Session]) -> None:
        try:
            await self._backend.insert(
                "notifications",
                [notification.model_dump(mode="json")],
                access_token=session.access_token if session else None,
            )
        except BackendError as exc:
            raise NotifyError(str(exc)) from exc

    async def handle_booking_created(
        self,
        client_key: str,
        flow_id: str,
        booking: BookingPayload,
        session: Optional[Session] = None,
    ) -> BookingOutcome:
        flow = self._store.get(client_key, flow_id)
        if str(booking.provider_id) != str(flow.provider_id):
            raise FlowStateError("Booking does not belong to this provider.")

        flow = self._store.transition(
            client_key,
            flow_id,
            "booking_created",
            step="booking_received",
            active_dialog="none",
            updates={"booking": booking},
        )
        logger.info("Booking %s created for provider %s (swap=%s)", booking.id, flow.provider_id, booking.is_skill_swap)

        requester_name = booking.requester_name or flow.requester_name or FALLBACK_REQUESTER_NAME
        notification = derive_notification(booking, booking.provider_id, requester_name)
        try:
            await self._persist_notification(notification, session)
        except NotifyError as exc:
            logger.warning("Booking %s created but notification could not be sent: %s", booking.id, exc)
            self._store.transition(
                client_key,
                flow_id,
                "notify_failed",
                step="notification_failed",
                updates={"notification": notification},
            )
            flow = self._store.transition(client_key, flow_id, "complete", step="completed_without_notification")
            return BookingOutcome(flow=flow, notified=False)

        self._store.transition(
            client_key,
            flow_id,
            "notified",
            step="notification_sent",
            updates={"notification": notification},
        )
        if booking.is_skill_swap:
            flow = self._store.transition(client_key, flow_id, "complete", step="skill_swap_requested")
        else:
            flow = self._store.transition(
                client_key,
                flow_id,
                "awaiting_payment",
                step="payment_requested",
                active_dialog="payment",
            )
        return BookingOutcome(flow=flow, notified=True)


booking_orchestrator = BookingOrchestrator(backend_client, flow_store)
