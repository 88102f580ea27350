from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from devkit.timezone import as_jst


class TravelStyle(str, Enum):
    BIKE = "bike"
    CAR = "car"
    TRAIN = "train"
    WALKING = "walking"
    BICYCLE = "bicycle"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"
    LOCAL = "local"


class Interest(str, Enum):
    ONSEN = "onsen"
    GOURMET = "gourmet"
    SCENERY = "scenery"
    CULTURE = "culture"
    CAMPING = "camping"
    PHOTOGRAPHY = "photography"
    OUTDOOR = "outdoor"


class Region(str, Enum):
    ALL = "all"
    DOHOKU = "dohoku"
    DOOU = "doou"
    DOUNAN = "dounan"
    DOUTOU = "doutou"


class PostType(str, Enum):
    STATUS = "status"
    SPOT = "spot"
    INFO = "info"
    HELP = "help"
    LOG = "log"


class Visibility(str, Enum):
    PUBLIC = "public"
    FRIENDS = "friends"
    PRIVATE = "private"


class SpotCategory(str, Enum):
    ACCOMMODATION = "accommodation"
    CAMPING = "camping"
    FUEL = "fuel"
    FOOD = "food"
    SIGHTSEEING = "sightseeing"
    ONSEN = "onsen"
    SERVICE = "service"
    SHOPPING = "shopping"
    COMMUNICATION = "communication"


class LoginMethod(str, Enum):
    GUEST = "guest"
    EMAIL = "email"
    SOCIAL = "social"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class StoredModel(BaseModel):
    """Base for records persisted as JSON. Dumps use the stored key names."""

    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class User(StoredModel):
    id: str
    name: str
    avatar_url: str | None = None
    bio: str = ""
    travel_style: list[TravelStyle] = Field(default_factory=lambda: [TravelStyle.CAR])
    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    interests: list[Interest] = Field(default_factory=list)
    location_sharing_level: int = Field(default=2, ge=0)
    created_at: str


class PostDraft(StoredModel):
    """Post content without an id; what the offline outbox receives."""

    user_id: str
    user: User | None = None
    content: str
    images: list[str] = Field(default_factory=list)
    post_type: PostType = PostType.STATUS
    location_name: str | None = None
    lat: float | None = None
    lng: float | None = None
    region: Region = Region.DOOU
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    visibility: Visibility = Visibility.PUBLIC
    likes_count: int = 0
    comments_count: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class Post(PostDraft):
    id: str
    created_at: str
    updated_at: str
    saved_at: str | None = Field(default=None, alias="savedAt")


class OfflinePost(PostDraft):
    id: str
    created_at: str
    needs_sync: bool = Field(default=True, alias="needsSync")

    def to_draft(self) -> PostDraft:
        return PostDraft.model_validate(self.model_dump(exclude={"id", "needs_sync"}))


class LocationPoint(StoredModel):
    latitude: float
    longitude: float
    timestamp: float
    accuracy: float | None = None
    altitude: float | None = None
    speed: float | None = None


class TrackMetadata(StoredModel):
    name: str
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    distance: float
    travel_style: TravelStyle = Field(default=TravelStyle.CAR, alias="travelStyle")
    region: Region = Region.DOOU


class SavedTrack(StoredModel):
    points: list[LocationPoint] = Field(default_factory=list)
    metadata: TrackMetadata
    saved_at: str | None = Field(default=None, alias="savedAt")


class Spot(StoredModel):
    id: str
    name: str
    description: str | None = None
    category: SpotCategory
    subcategory: str | None = None
    lat: float
    lng: float
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    business_hours: dict[str, Any] | None = None
    price_range: str | None = None
    images: list[str] | None = None
    verified_at: str | None = None
    created_by: str
    created_at: str
    saved_at: str | None = Field(default=None, alias="savedAt")


class UserSettings(StoredModel):
    theme: Theme = Theme.LIGHT
    notifications: bool = True
    location_sharing: int = Field(default=2, alias="locationSharing")
    auto_backup: bool = Field(default=True, alias="autoBackup")


class AuthUser(StoredModel):
    id: str
    email: str
    name: str
    is_authenticated: bool = Field(default=True, alias="isAuthenticated")
    login_method: LoginMethod = Field(alias="loginMethod")


class Session(StoredModel):
    session_id: str = Field(alias="sessionId")
    created_at: datetime = Field(alias="createdAt")
    expires_at: datetime = Field(alias="expiresAt")

    @field_validator("created_at", "expires_at")
    @classmethod
    def normalize_to_jst(cls, value: datetime) -> datetime:
        return as_jst(value)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
