"""
Startup model - one row per app on the leaderboard
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from leaderboard.core.database import Base


class Startup(Base):
    """An app registered on the leaderboard"""
    __tablename__ = "startups"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(255), nullable=False)
    website_url = Column(String(500), nullable=True)
    founder_username = Column(String(100), nullable=True)  # X/Twitter handle
    app_store_id = Column(String(50), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    api_key = relationship(
        "ApiKey",
        back_populates="startup",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    revenue_metrics = relationship(
        "RevenueMetrics",
        back_populates="startup",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self):
        return f"<Startup(id={self.id}, name='{self.name}')>"
