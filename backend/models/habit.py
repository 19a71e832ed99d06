from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from database import Base


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=True)  # hex, e.g. "#3498db"
    display_order = Column(Integer, nullable=False, default=0)  # user-controlled sort key
    archived = Column(Boolean, nullable=False, default=False)  # soft-hide, logs preserved
    archived_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    user = relationship("User", back_populates="habits")
    logs = relationship(
        "DailyLog",
        back_populates="habit",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DailyLog.log_date",
    )

    __table_args__ = (
        Index("idx_habits_user_archived", "user_id", "archived"),
    )
