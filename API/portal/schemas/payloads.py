"""Request bodies accepted by the portal routes.

Models ignore unknown keys unless they are declared open (curriculum drafts, announcements),
in which case extra keys pass through to the workflow backend untouched.
"""
from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, StringConstraints, field_validator

Trimmed = Annotated[str, StringConstraints(strip_whitespace=True)]
JsonText = Union[str, dict[str, Any]]


def _json_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value or {}, separators=(",", ":"))


class OpenPayload(BaseModel):
    model_config = ConfigDict(extra="allow")


# Auth


class ActivateRequest(BaseModel):
    invite_id: str = Field(alias="inviteId", min_length=3)
    email: EmailStr
    password: str = Field(min_length=8)


class ResetRequest(BaseModel):
    email: EmailStr


# Me


class ClaimSubmitRequest(BaseModel):
    code: str = Field(min_length=3)
    track: Optional[str] = None
    module: Optional[str] = None
    lesson: Optional[Union[int, str]] = None
    name: Optional[str] = None
    tier: Optional[str] = None


class GoalRequest(BaseModel):
    goal: str = Field(max_length=500)


class JournalEntryRequest(BaseModel):
    claim_code: str = Field(min_length=3)
    program_id: str = ""
    role: str = Field(min_length=2)
    decision_text: str = Field(min_length=5)
    rationale_text: str = Field(min_length=5)
    outcome_text: str = Field(min_length=5)


class NotificationPreferencesRequest(BaseModel):
    shoutouts: Optional[bool] = None
    assignments: Optional[bool] = None
    leaderboard_changes: Optional[bool] = None
    instructor_announcements: Optional[bool] = None
    session_recaps: Optional[bool] = None


class OnboardingRequest(BaseModel):
    step: str
    done: bool = True
    dismissed: bool = False


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=60)
    bio: Optional[str] = Field(default=None, max_length=300)


class TranscriptRequest(BaseModel):
    program_id: str = ""


# Student community


class DiscussionThreadRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=2000)
    module_id: str = ""


class DiscussionReplyRequest(BaseModel):
    body: str = Field(min_length=1, max_length=2000)


class EventSubmitRequest(BaseModel):
    claim_code: str = Field(min_length=3)
    reflection_note: str = Field(default="", max_length=2000)


class HotTakeRequest(BaseModel):
    take: str = Field(min_length=1, max_length=280)


class HotTakeVoteRequest(BaseModel):
    vote: Literal["agree", "disagree"]


class ShoutoutRequest(BaseModel):
    recipient_email: EmailStr
    message: str = Field(min_length=1, max_length=280)


class PodChatMessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)


class PodKudosRequest(BaseModel):
    target_email: EmailStr
    message: str = Field(min_length=2, max_length=400)


class RaffleEntryRequest(BaseModel):
    tickets_spent: int = Field(alias="ticketsSpent", gt=0, strict=True)


class SupportTicketRequest(BaseModel):
    category: Trimmed = Field(min_length=2, max_length=40)
    subject: Trimmed = Field(min_length=3, max_length=160)
    message: Trimmed = Field(min_length=5, max_length=5000)
    page_context: Trimmed = Field(default="", max_length=200)


# Chat


class ChatPostRequest(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1, max_length=1200)
    action: Literal["post", "moderate"] = "post"
    message_id: Optional[str] = Field(default=None, alias="messageId")


class ChatModerateRequest(BaseModel):
    message_id: str = Field(alias="messageId", min_length=4)


# Admin


class AchievementRunRequest(BaseModel):
    achievement_type: Literal["comeback", "all"] = "comeback"
    dry_run: bool = False


class AssignmentRequest(BaseModel):
    assignment_id: Optional[str] = None
    track: str
    module: str
    title: str = Field(min_length=2)
    description: str = ""
    due_at: Optional[str] = None
    resource_url: str = ""
    enabled: bool = True


class BroadcastRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


class CalendarEventRequest(BaseModel):
    event_id: Optional[str] = None
    title: str = Field(min_length=2)
    starts_at: str
    ends_at: str
    location: str = ""
    meeting_url: str = ""
    notes: str = ""
    enabled: bool = True


class CalendarEventPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2)
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    kind: Optional[str] = None
    location: Optional[str] = None
    meeting_url: Optional[str] = None
    notes: Optional[str] = None
    enabled: Optional[bool] = None


class ChangelogEntryRequest(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    body: str = Field(min_length=1, max_length=2000)
    category: Literal["feature", "fix", "improvement", "note"] = "feature"


class DraftReorderRequest(BaseModel):
    entity: Literal["programs", "modules", "lessons", "activities", "outcomes"]
    ordered_ids: list[Annotated[str, StringConstraints(min_length=1)]] = Field(min_length=1)


class PublishRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)
    program_id: Optional[str] = None


class RollbackRequest(BaseModel):
    publish_batch_id: Optional[str] = None


DeepDiveKind = Literal["article", "video", "podcast", "other"]


class DeepDiveLinkRequest(BaseModel):
    module_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    url: HttpUrl
    kind: DeepDiveKind = "article"
    description: str = Field(default="", max_length=500)
    xp_reward: int = Field(default=10, ge=0, le=500)


class DeepDiveLinkPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    url: Optional[HttpUrl] = None
    kind: Optional[DeepDiveKind] = None
    description: Optional[str] = Field(default=None, max_length=500)
    xp_reward: Optional[int] = Field(default=None, ge=0, le=500)


class DiscussionAnswerRequest(BaseModel):
    reply_id: str


class EventRequest(BaseModel):
    event_id: Optional[str] = None
    season_id: Optional[str] = None
    title: str = Field(min_length=2)
    description: str = ""
    track: str = ""
    module: str = ""
    open_at: Optional[str] = None
    close_at: Optional[str] = None
    rules_json: JsonText = "{}"
    status: str = "ACTIVE"

    @field_validator("rules_json", mode="after")
    @classmethod
    def _serialize_rules(cls, value: JsonText) -> str:
        return _json_text(value)


class InviteRequest(BaseModel):
    email: EmailStr
    role: Literal["STUDENT", "INSTRUCTOR", "ADMIN"] = "STUDENT"


class JournalScoreRequest(BaseModel):
    entry_id: str = Field(min_length=3)
    score_decision_quality: float = Field(ge=0, le=5)
    score_financial_logic: float = Field(ge=0, le=5)
    score_risk_management: float = Field(ge=0, le=5)
    score_communication: float = Field(ge=0, le=5)
    coach_note: str = Field(default="", max_length=5000)


class PinRequest(BaseModel):
    pinned: bool


class PodAssignRequest(BaseModel):
    season_id: Optional[str] = None
    pod_size: Optional[int] = Field(default=None, ge=2, le=8)


class QuestRequest(BaseModel):
    quest_id: Optional[str] = None
    title: str = Field(min_length=2)
    description: str = ""
    target_type: str = Field(min_length=2)
    target_json: JsonText
    reward_points: int = Field(default=0, ge=0)
    reward_badge: str = ""
    difficulty: str = "Core"
    enabled: bool = True
    sort_order: Optional[int] = None

    @field_validator("target_json", mode="after")
    @classmethod
    def _serialize_target(cls, value: JsonText) -> str:
        return _json_text(value)


class RaffleRequest(BaseModel):
    title: str = Field(min_length=2)
    prize: str = Field(min_length=2)
    opens_at: Optional[str] = None
    closes_at: Optional[str] = None


class ReferralRedeemRequest(BaseModel):
    referral_code: str = Field(min_length=1)
    referred_email: EmailStr
    xp_amount: Optional[int] = Field(default=None, ge=0)


class SeasonRequest(BaseModel):
    title: str = Field(min_length=2)
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    status: str = "ACTIVE"


class ZoomLinkRequest(BaseModel):
    url: Union[Literal[""], HttpUrl]


class SupportResolveRequest(BaseModel):
    resolution_note: Trimmed = Field(default="", max_length=5000)
    notify_student: bool = True
