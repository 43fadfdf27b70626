import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from spotch.core.database import Base


class QuestCondition(str, enum.Enum):
    VISIT_COUNT = "visit_count"
    FRIEND_COUNT = "friend_count"
    PREMIUM_STATUS = "premium_status"


class QuestStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLAIMED = "claimed"


class Quest(Base):
    __tablename__ = "quests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    reward_points = Column(Integer, nullable=False)
    condition_type = Column(String, nullable=False)
    condition_value = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserQuest(Base):
    __tablename__ = "user_quests"
    __table_args__ = (UniqueConstraint("user_id", "quest_id", name="uq_user_quests_user_quest"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    quest_id = Column(Integer, ForeignKey("quests.id"), index=True, nullable=False)
    status = Column(String, default=QuestStatus.IN_PROGRESS.value, nullable=False)
    progress = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
