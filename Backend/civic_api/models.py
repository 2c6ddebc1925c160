from typing import Literal

from pydantic import BaseModel, Field

IssueCategory = Literal["pothole", "graffiti", "streetlight", "garbage", "other"]
IssueStatus = Literal[
    "submitted",
    "pending_verification",
    "under_review",
    "in_progress",
    "resolved",
    "escalated",
]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class GeoPoint(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class IssueCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    category: IssueCategory
    location: GeoPoint
    address: str = Field(default="", max_length=300)
    wardId: str = Field(default="", max_length=64)
    photoBase64: str | None = None
    userId: str | None = None


class VotePayload(BaseModel):
    userId: str = Field(min_length=1)
    vote: Literal[1, -1]


class CommentCreate(BaseModel):
    userId: str = Field(min_length=1)
    userName: str = Field(min_length=1, max_length=80)
    message: str = Field(min_length=1, max_length=1000)


class ContributionCreate(BaseModel):
    userId: str = Field(min_length=1)
    userName: str = Field(min_length=1, max_length=80)
    description: str = Field(min_length=1, max_length=2000)
    mediaBase64: str | None = None
    mediaUrl: str | None = None


class StatusUpdate(BaseModel):
    status: IssueStatus


class CommunityPostCreate(BaseModel):
    userId: str = Field(min_length=1)
    description: str = Field(min_length=1, max_length=2000)
    mediaBase64: list[str] = Field(default_factory=list)


class LikePayload(BaseModel):
    userId: str | None = None


class CommunityEventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    location: str = Field(min_length=1, max_length=300)
    startsAt: str


class ProfileUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=2, max_length=32)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, min_length=7, max_length=20)


class UsernameCheck(BaseModel):
    username: str = Field(min_length=2, max_length=32)


class ChangePasswordRequest(BaseModel):
    current: str = Field(min_length=4)
    next: str = Field(min_length=6)
