"""
Latest revenue snapshot per startup
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from leaderboard.core.database import Base


class RevenueMetrics(Base):
    """Last known RevenueCat metrics; each refresh overwrites the row"""
    __tablename__ = "revenue_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    startup_id = Column(
        Integer,
        ForeignKey("startups.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    total_revenue = Column(Numeric(12, 2), nullable=False, default=0, index=True)
    mrr = Column(Numeric(12, 2), nullable=False, default=0, index=True)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())

    startup = relationship("Startup", back_populates="revenue_metrics")

    __table_args__ = (
        CheckConstraint('total_revenue >= 0', name='check_total_revenue_non_negative'),
        CheckConstraint('mrr >= 0', name='check_mrr_non_negative'),
    )

    def __repr__(self):
        return f"<RevenueMetrics(startup_id={self.startup_id}, revenue={self.total_revenue}, mrr={self.mrr})>"
