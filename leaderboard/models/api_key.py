"""
Encrypted RevenueCat API keys
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from leaderboard.core.database import Base


class ApiKey(Base):
    """
    Credential record for a startup

    `revenuecat_api_key` holds the salt:nonce:tag:ciphertext token from
    leaderboard.core.encryption and is never returned to clients.  A
    RevenueCat project can back only one startup.
    """
    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    startup_id = Column(
        Integer,
        ForeignKey("startups.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    revenuecat_api_key = Column(Text, nullable=False)  # encrypted
    revenuecat_project_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    startup = relationship("Startup", back_populates="api_key")

    def __repr__(self):
        # Never include the token
        return f"<ApiKey(startup_id={self.startup_id}, project_id='{self.revenuecat_project_id}')>"
