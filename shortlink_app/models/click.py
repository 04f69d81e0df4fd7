from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from shortlink_app.database.connection import Base
from shortlink_app.timeutils import utcnow


class ClickEvent(Base):
    """
    One row per successful redirect. Append-only.

    `ip_hash` is a truncated one-way digest of the visitor address or, when
    no address is known, of a header fingerprint. The raw address is never
    stored.
    """
    __tablename__ = "clicks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url_id = Column(Integer, ForeignKey("urls.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    ip_hash = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)

    # Best-effort geolocation from edge headers
    country = Column(String(8), nullable=True)
    city = Column(String(128), nullable=True)

    # Derived from user_agent
    device = Column(String(32), nullable=True)
    browser = Column(String(32), nullable=True)
    os = Column(String(32), nullable=True)
