from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.cms.models import Base, JSONType


class AnalyticsEvent(Base):
    __tablename__ = "analytics"
    __table_args__ = (
        Index("idx_analytics_created_at", "created_at"),
        Index("idx_analytics_event", "event"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    page_id: Mapped[int | None] = mapped_column(ForeignKey("pages.id", ondelete="SET NULL"), nullable=True)
    post_id: Mapped[int | None] = mapped_column(ForeignKey("posts.id", ondelete="SET NULL"), nullable=True)

    event: Mapped[str] = mapped_column(String(64), nullable=False)  # view, conversion, form_submit, ...
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
