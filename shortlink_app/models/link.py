from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from shortlink_app.database.connection import Base
from shortlink_app.timeutils import as_utc, utcnow


class ShortLink(Base):
    """
    A slug -> target mapping.

    Rows are never removed by normal owner actions: `deleted_at` marks a soft
    delete and the resolver ignores such rows. Only permanent delete removes
    the row (and its clicks).

    Slugs are not unique at the column level. Uniqueness is enforced among
    live rows (not deleted, not expired) when a link is created or restored,
    so an expired slug can be handed out again.
    """
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Nullable so base62 slugs can be derived from the id after flush
    slug = Column(String(50), nullable=True, index=True)
    target_url = Column(String(2048), nullable=False)
    owner_id = Column(String(64), nullable=True, index=True)

    # Display metadata
    is_public = Column(Boolean, nullable=False, default=True)
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    click_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    expiry_at = Column(DateTime(timezone=True), nullable=True)

    # Password gate (bcrypt hash, never plaintext)
    require_password = Column(Boolean, nullable=False, default=False)
    password_hash = Column(String(128), nullable=True)

    # Guest-origin links
    is_guest = Column(Boolean, nullable=False, default=False)
    guest_session_id = Column(String(128), nullable=True, index=True)
    guest_created_at = Column(DateTime(timezone=True), nullable=True)

    def is_expired(self, now=None) -> bool:
        if self.expiry_at is None:
            return False
        return as_utc(self.expiry_at) <= (now or utcnow())

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
