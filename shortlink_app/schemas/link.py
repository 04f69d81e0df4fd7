from pydantic import BaseModel, Field, computed_field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime, timezone
from shortlink_app.config import settings
from shortlink_app.timeutils import as_utc


class LinkCreate(BaseModel):
    """Payload for creating a link.

    Scheme and host of `target_url` are validated by the service so the same
    rule applies to every caller.
    """
    target_url: str = Field(..., max_length=2048, description="Absolute http(s) URL to redirect to")
    slug: Optional[str] = Field(None, description="Custom slug; generated when omitted")
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    is_public: bool = True
    owner_id: Optional[str] = Field(None, max_length=64)
    expiry_at: Optional[datetime] = None
    password: Optional[str] = Field(None, min_length=1, max_length=72)  # bcrypt limit
    guest_session_id: Optional[str] = Field(None, max_length=128)

    @field_validator("slug")
    @classmethod
    def blank_slug_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("expiry_at")
    @classmethod
    def expiry_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Naive values are taken as UTC; aware ones are converted.

        Some backends (SQLite) store the wall clock without the offset.
        """
        if value is None:
            return None
        return as_utc(value).astimezone(timezone.utc)


class PasswordUpdate(BaseModel):
    """Set or change the password; `null` removes protection"""
    password: Optional[str] = Field(None, min_length=1, max_length=72)


class GuestMigration(BaseModel):
    guest_session_id: str = Field(..., min_length=1, max_length=128)
    user_id: str = Field(..., min_length=1, max_length=64)


class GuestMigrationResult(BaseModel):
    migrated_count: int
    url_ids: list[int]


class LinkResponse(BaseModel):
    """Serializes the ShortLink model directly (from_attributes=True)"""
    id: int
    slug: str
    target_url: str
    owner_id: Optional[str] = None
    is_public: bool
    title: Optional[str] = None
    description: Optional[str] = None
    click_count: int
    require_password: bool
    is_guest: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    expiry_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/{self.slug}"

    model_config = ConfigDict(from_attributes=True)


class LinkStats(BaseModel):
    id: int
    slug: str
    click_count: int
    created_at: datetime
    last_clicked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
