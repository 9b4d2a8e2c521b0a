import logging
import math
from datetime import date
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from skilllink.errors import BackendError, FetchError, ProviderNotFoundError, RecordNotFoundError
from skilllink.models import (
    AvailabilitySlot,
    BookingInfo,
    ProviderView,
    RecordId,
    Review,
    Session,
    SlotView,
    UserProfile,
    ViewerContext,
)
from skilllink.services.backend_client import BackendClient, backend_client

logger = logging.getLogger(__name__)

PROVIDER_COLUMNS = """
    *,
    skills (id, skill_name, category, description, intent),
    availability_slots (id, date, start_time, end_time, is_available)
"""
VIEWER_COLUMNS = "*, skills(*)"
REVIEW_COLUMNS = "*, reviewer:reviewer_id (name, profile_image)"

PLACEHOLDER_IMAGE = "/placeholder.svg?height=160&width=160"
DEFAULT_BIO = "This provider hasn't added a bio yet."
DEFAULT_LOCATION = "Location not specified"
DEFAULT_SERVICE_RADIUS_KM = 5
MAX_STARS = 5


def compute_rating(reviews: Sequence[Review]) -> float:
    """Mean review rating, 0 for a provider without reviews. Never rounded."""
    if not reviews:
        return 0.0
    return sum(review.rating for review in reviews) / len(reviews)


def star_rating(rating: float) -> int:
    # Half-up, so 3.5 shows four stars.
    return int(math.floor(rating + 0.5))


def _date_label(raw: str) -> str:
    try:
        parsed = date.fromisoformat(raw[:10])
    except ValueError:
        return raw
    return f"{parsed:%A}, {parsed:%b} {parsed.day}"


def slot_view(slot: AvailabilitySlot) -> SlotView:
    return SlotView(
        id=slot.id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        date_label=_date_label(slot.date),
        time_label=f"{slot.start_time[:5]} - {slot.end_time[:5]}",
    )


def build_provider_view(
    provider: UserProfile,
    reviews: List[Review],
    viewer: Optional[UserProfile],
    authenticated: bool,
) -> ProviderView:
    rating = compute_rating(reviews)
    stars = star_rating(rating)
    # Every provider is open to skill swaps for now.
    skill_swap = True
    return ProviderView(
        id=provider.id,
        name=provider.name or "",
        profile_image=provider.profile_image or PLACEHOLDER_IMAGE,
        bio=provider.bio or DEFAULT_BIO,
        location=provider.location or DEFAULT_LOCATION,
        rating=rating,
        star_rating=stars,
        stars=[position <= stars for position in range(1, MAX_STARS + 1)],
        review_count=len(reviews),
        skills_offered=[skill for skill in provider.skills if skill.intent == "provider"],
        skills_seeking=[skill for skill in provider.skills if skill.intent == "seeker"],
        available_slots=[slot_view(slot) for slot in provider.availability_slots if slot.is_available],
        reviews=reviews,
        skill_swap=skill_swap,
        booking_info=BookingInfo(service_radius_km=provider.distance or DEFAULT_SERVICE_RADIUS_KM),
        message_url=f"/messages?user={provider.id}",
        viewer=ViewerContext(
            authenticated=authenticated,
            name=viewer.name if viewer else None,
            can_propose_skill_swap=bool(skill_swap and viewer and viewer.skills),
        ),
    )


class ProfileFetcher:
    def __init__(self, backend: BackendClient):
        self._backend = backend

    async def load_viewer(self, session: Optional[Session]) -> Optional[UserProfile]:
        """Viewer's own profile; failures only disable viewer-specific features."""
        if not session:
            return None
        try:
            row = await self._backend.select(
                "users",
                VIEWER_COLUMNS,
                {"id": session.user_id},
                single=True,
                access_token=session.access_token,
            )
            return UserProfile.model_validate(row)
        except (BackendError, ValidationError) as exc:
            logger.warning("Viewer profile %s unavailable: %s", session.user_id, exc)
            return None

    async def _load_provider_record(self, provider_id: RecordId, access_token: Optional[str]) -> UserProfile:
        try:
            row = await self._backend.select(
                "users",
                PROVIDER_COLUMNS,
                {"id": provider_id},
                single=True,
                access_token=access_token,
            )
        except RecordNotFoundError as exc:
            raise ProviderNotFoundError(f"Provider {provider_id} not found") from exc
        except BackendError as exc:
            raise FetchError(f"Provider {provider_id} could not be loaded: {exc}") from exc
        try:
            return UserProfile.model_validate(row)
        except ValidationError as exc:
            raise FetchError(f"Provider {provider_id} has an unexpected record shape") from exc

    async def _load_reviews(self, provider_id: RecordId, access_token: Optional[str]) -> List[Review]:
        try:
            rows: Any = await self._backend.select(
                "reviews",
                REVIEW_COLUMNS,
                {"provider_id": provider_id},
                access_token=access_token,
            )
        except BackendError as exc:
            raise FetchError(f"Reviews for provider {provider_id} could not be loaded: {exc}") from exc
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise FetchError(f"Reviews for provider {provider_id} came back as {type(rows).__name__}")
        reviews: List[Review] = []
        for row in rows:
            try:
                reviews.append(Review.model_validate(row))
            except ValidationError:
                logger.warning("Skipping malformed review for provider %s: %r", provider_id, row)
        return reviews

    async def load_provider(self, provider_id: RecordId, session: Optional[Session] = None) -> ProviderView:
        access_token = session.access_token if session else None
        viewer = await self.load_viewer(session)
        provider = await self._load_provider_record(provider_id, access_token)
        reviews = await self._load_reviews(provider_id, access_token)
        return build_provider_view(provider, reviews, viewer, authenticated=session is not None)


profile_fetcher = ProfileFetcher(backend_client)
