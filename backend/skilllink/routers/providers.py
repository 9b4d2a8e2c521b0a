from typing import Optional

from fastapi import APIRouter, Depends

from skilllink.auth import current_session, ensure_client_key
from skilllink.models import FlowOpenRequest, FlowView, ProviderView, Session
from skilllink.services.booking_orchestrator import booking_orchestrator
from skilllink.services.profile_fetcher import profile_fetcher

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/{provider_id}", response_model=ProviderView)
async def provider_details(provider_id: str, session: Optional[Session] = Depends(current_session)):
    return await profile_fetcher.load_provider(provider_id, session)


@router.post("/{provider_id}/flows", response_model=FlowView)
async def open_booking_flow(
    provider_id: str,
    request: FlowOpenRequest,
    client_key: str = Depends(ensure_client_key),
    session: Optional[Session] = Depends(current_session),
):
    viewer = await profile_fetcher.load_viewer(session)
    flow = booking_orchestrator.open_flow(client_key, provider_id, request.kind, viewer)
    return FlowView(flow=flow)
