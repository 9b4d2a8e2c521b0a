from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

RecordId = Union[int, str]

SkillIntent = Literal["provider", "seeker"]
NotificationType = Literal["new_booking", "skill_swap_request"]
FlowKind = Literal["booking", "skill_swap"]
FlowState = Literal[
    "idle",
    "booking_created",
    "notified",
    "notify_failed",
    "awaiting_payment",
    "complete",
]
DialogName = Literal["none", "booking", "skill_swap", "payment"]


class Skill(BaseModel):
    id: RecordId
    skill_name: str
    category: str = ""
    description: Optional[str] = None
    intent: SkillIntent = "provider"


class AvailabilitySlot(BaseModel):
    id: RecordId
    date: str
    start_time: str
    end_time: str
    is_available: bool = False


class ReviewerRef(BaseModel):
    name: Optional[str] = None
    profile_image: Optional[str] = None


class Review(BaseModel):
    id: RecordId
    rating: float
    comment: Optional[str] = None
    created_at: Optional[str] = None
    reviewer: Optional[ReviewerRef] = None


class UserProfile(BaseModel):
    id: RecordId
    name: Optional[str] = None
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    distance: Optional[float] = None
    skills: list[Skill] = Field(default_factory=list)
    availability_slots: list[AvailabilitySlot] = Field(default_factory=list)


class BookingPayload(BaseModel):
    """Booking handed back by the booking or skill-swap dialog on success."""

    model_config = ConfigDict(extra="allow")

    id: RecordId
    provider_id: RecordId
    service_name: str
    is_skill_swap: bool = False
    requester_name: Optional[str] = None


class NotificationData(BaseModel):
    booking_id: RecordId
    is_skill_swap: bool


class NotificationRecord(BaseModel):
    user_id: RecordId
    type: NotificationType
    title: str
    message: str
    data: NotificationData


class Session(BaseModel):
    access_token: str
    refresh_token: str = ""
    expires_at: int
    user_id: str
    email: Optional[str] = None


class SessionView(BaseModel):
    user_id: str
    email: Optional[str] = None
    expires_at: int


class Notice(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class Navigation(BaseModel):
    href: str
    replace: bool = False


class LoginRequest(BaseModel):
    email: str
    password: str


class MagicLinkRequest(BaseModel):
    email: str
    redirect_to: Optional[str] = None


class AuthResult(BaseModel):
    notice: Optional[Notice] = None
    navigation: Optional[Navigation] = None
    session: Optional[SessionView] = None
    loading: bool = False


class SessionStatus(BaseModel):
    authenticated: bool
    session: Optional[SessionView] = None


class SlotView(BaseModel):
    id: RecordId
    date: str
    start_time: str
    end_time: str
    date_label: str
    time_label: str


class BookingInfo(BaseModel):
    session_duration_minutes: int = 60
    cancellation_policy: str = "Free cancellation up to 24 hours before the session"
    service_radius_km: float = 5


class ViewerContext(BaseModel):
    authenticated: bool = False
    name: Optional[str] = None
    can_propose_skill_swap: bool = False


class ProviderView(BaseModel):
    id: RecordId
    name: str
    profile_image: str
    bio: str
    location: str
    rating: float
    star_rating: int
    stars: list[bool]
    review_count: int
    skills_offered: list[Skill] = Field(default_factory=list)
    skills_seeking: list[Skill] = Field(default_factory=list)
    available_slots: list[SlotView] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)
    skill_swap: bool = True
    booking_info: BookingInfo = Field(default_factory=BookingInfo)
    message_url: str
    viewer: ViewerContext = Field(default_factory=ViewerContext)


class FlowEvent(BaseModel):
    step: str
    state: FlowState
    active_dialog: DialogName
    at: str


class BookingFlow(BaseModel):
    id: str
    client_key: str = Field(default="", exclude=True)
    provider_id: RecordId
    kind: FlowKind
    state: FlowState = "idle"
    active_dialog: DialogName = "none"
    requester_name: Optional[str] = None
    booking: Optional[BookingPayload] = None
    notification: Optional[NotificationRecord] = None
    payment_confirmed_at: Optional[str] = None
    payment_reference: Optional[str] = None
    history: list[FlowEvent] = Field(default_factory=list)
    created_at: str


class FlowOpenRequest(BaseModel):
    kind: FlowKind = "booking"


class PaymentConfirmation(BaseModel):
    booking_id: RecordId
    status: str
    payment_reference: Optional[str] = None


class FlowView(BaseModel):
    flow: BookingFlow
    notices: list[Notice] = Field(default_factory=list)
    already_confirmed: bool = False


class TerminalAction(BaseModel):
    label: str
    href: str


class ErrorBody(BaseModel):
    notice: Optional[Notice] = None
    navigation: Optional[Navigation] = None
    state: Optional[str] = None
    title: Optional[str] = None
    action: Optional[TerminalAction] = None
    detail: Dict[str, Any] = Field(default_factory=dict)
