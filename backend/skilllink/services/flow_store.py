from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional, Set
from uuid import uuid4

from skilllink.errors import FlowNotFoundError, FlowStateError
from skilllink.models import BookingFlow, DialogName, FlowEvent, FlowKind, FlowState, RecordId

TRANSITIONS: Dict[str, Set[str]] = {
    "idle": {"booking_created"},
    "booking_created": {"notified", "notify_failed"},
    "notified": {"complete", "awaiting_payment"},
    "notify_failed": {"complete"},
    "awaiting_payment": {"complete"},
    "complete": set(),
}

MAX_FLOWS = 5000


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FlowStore:
    """Booking workflows for the current process, one record per opened dialog."""

    def __init__(self, max_flows: int = MAX_FLOWS):
        self._lock = Lock()
        self._flows: Dict[str, BookingFlow] = {}
        self._max_flows = max_flows

    def create(
        self,
        client_key: str,
        provider_id: RecordId,
        kind: FlowKind,
        requester_name: Optional[str] = None,
    ) -> BookingFlow:
        now = _now_iso()
        flow = BookingFlow(
            id=f"flw_{uuid4().hex[:12]}",
            client_key=client_key,
            provider_id=provider_id,
            kind=kind,
            state="idle",
            active_dialog=kind,
            requester_name=requester_name,
            history=[FlowEvent(step="dialog_opened", state="idle", active_dialog=kind, at=now)],
            created_at=now,
        )
        with self._lock:
            self._flows[flow.id] = flow
            while len(self._flows) > self._max_flows:
                self._flows.pop(next(iter(self._flows)))
        return flow

    def get(self, client_key: str, flow_id: str) -> BookingFlow:
        with self._lock:
            flow = self._flows.get(flow_id)
        if not flow or flow.client_key != client_key:
            raise FlowNotFoundError("Booking flow not found")
        return flow

    def transition(
        self,
        client_key: str,
        flow_id: str,
        to_state: FlowState,
        step: str,
        *,
        active_dialog: Optional[DialogName] = None,
        updates: Optional[Dict[str, Any]] = None,
    ) -> BookingFlow:
        with self._lock:
            flow = self._flows.get(flow_id)
            if not flow or flow.client_key != client_key:
                raise FlowNotFoundError("Booking flow not found")
            if to_state not in TRANSITIONS[flow.state]:
                raise FlowStateError(f"Booking flow cannot move from {flow.state} to {to_state}")
            dialog = active_dialog if active_dialog is not None else flow.active_dialog
            event = FlowEvent(step=step, state=to_state, active_dialog=dialog, at=_now_iso())
            changes: Dict[str, Any] = dict(updates or {})
            changes.update({"state": to_state, "active_dialog": dialog, "history": [*flow.history, event]})
            updated = flow.model_copy(update=changes)
            self._flows[flow_id] = updated
            return updated

    def set_dialog(self, client_key: str, flow_id: str, dialog: DialogName, step: str) -> BookingFlow:
        with self._lock:
            flow = self._flows.get(flow_id)
            if not flow or flow.client_key != client_key:
                raise FlowNotFoundError("Booking flow not found")
            event = FlowEvent(step=step, state=flow.state, active_dialog=dialog, at=_now_iso())
            updated = flow.model_copy(update={"active_dialog": dialog, "history": [*flow.history, event]})
            self._flows[flow_id] = updated
            return updated


flow_store = FlowStore()
