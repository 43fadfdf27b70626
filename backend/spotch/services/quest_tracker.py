from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, NotFound
from spotch.models.quest import Quest, QuestCondition, QuestStatus, UserQuest
from spotch.models.social import Follow
from spotch.models.user import User
from spotch.models.visit import Visit
from spotch.services import ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestView:
    id: int
    title: str
    description: str | None
    reward_points: int
    condition_type: str
    condition_value: int
    status: str
    progress: int


@dataclass(frozen=True)
class ClaimResult:
    quest_id: int
    reward: int
    balance: int


def _counters(db: Session, user_id: int) -> dict[str, int]:
    visits = db.query(func.count(Visit.id)).filter(Visit.user_id == user_id).scalar() or 0
    friends = db.query(func.count(Follow.id)).filter(Follow.follower_id == user_id).scalar() or 0
    premium = db.query(User.is_premium).filter(User.id == user_id).scalar()
    return {
        QuestCondition.VISIT_COUNT.value: int(visits),
        QuestCondition.FRIEND_COUNT.value: int(friends),
        QuestCondition.PREMIUM_STATUS.value: 1 if premium else 0,
    }


def _progress(quest: Quest, counters: dict[str, int]) -> int:
    return counters.get(quest.condition_type, 0)


def _is_met(quest: Quest, counters: dict[str, int]) -> bool:
    return _progress(quest, counters) >= int(quest.condition_value or 0)


def list_quests(db: Session, user_id: int) -> list[QuestView]:
    """Every quest with the caller's live progress.

    Nothing is written: a quest whose condition is met while still
    ``in_progress`` is shown as ``completed`` until it is refreshed or claimed.
    """
    quests = db.query(Quest).order_by(Quest.id.asc()).all()
    mine = {uq.quest_id: uq for uq in db.query(UserQuest).filter(UserQuest.user_id == user_id).all()}
    counters = _counters(db, user_id)

    views: list[QuestView] = []
    for quest in quests:
        record = mine.get(quest.id)
        status = record.status if record is not None else QuestStatus.IN_PROGRESS.value
        if status == QuestStatus.IN_PROGRESS.value and _is_met(quest, counters):
            status = QuestStatus.COMPLETED.value
        views.append(
            QuestView(
                id=quest.id,
                title=quest.title,
                description=quest.description,
                reward_points=int(quest.reward_points),
                condition_type=quest.condition_type,
                condition_value=int(quest.condition_value),
                status=status,
                progress=_progress(quest, counters),
            )
        )
    return views


def refresh_progress(db: Session, user_id: int, now: datetime | None = None) -> list[int]:
    """Persist progress and ``in_progress -> completed`` moves; never goes backwards.

    Does not commit and pays no rewards. Returns the ids of quests that became
    completed.
    """
    now = now or utcnow()
    counters = _counters(db, user_id)
    mine = {uq.quest_id: uq for uq in db.query(UserQuest).filter(UserQuest.user_id == user_id).all()}

    completed: list[int] = []
    for quest in db.query(Quest).order_by(Quest.id.asc()).all():
        progress = _progress(quest, counters)
        record = mine.get(quest.id)
        if record is None:
            record = UserQuest(user_id=user_id, quest_id=quest.id, status=QuestStatus.IN_PROGRESS.value, progress=0)
            db.add(record)
        if progress > int(record.progress or 0):
            record.progress = progress
        if record.status == QuestStatus.IN_PROGRESS.value and _is_met(quest, counters):
            record.status = QuestStatus.COMPLETED.value
            record.completed_at = now
            completed.append(quest.id)
    db.flush()
    if completed:
        logger.info("quests.completed user_id=%s quest_ids=%s", user_id, completed)
    return completed


def claim_reward(db: Session, user_id: int, quest_id: int, now: datetime | None = None) -> ClaimResult:
    now = now or utcnow()
    with unit_of_work(db):
        quest = db.get(Quest, quest_id)
        if quest is None:
            raise NotFound("Quest not found")

        record = (
            db.query(UserQuest)
            .filter(UserQuest.user_id == user_id, UserQuest.quest_id == quest_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if record is not None and record.status == QuestStatus.CLAIMED.value:
            raise BadRequest("Reward already claimed")

        counters = _counters(db, user_id)
        if not _is_met(quest, counters):
            raise BadRequest("Quest requirements not met")

        progress = max(_progress(quest, counters), int(quest.condition_value))
        if record is None:
            db.add(
                UserQuest(
                    user_id=user_id,
                    quest_id=quest_id,
                    status=QuestStatus.CLAIMED.value,
                    progress=progress,
                    completed_at=now,
                )
            )
            try:
                db.flush()
            except IntegrityError as exc:
                raise BadRequest("Reward already claimed") from exc
        else:
            updated = (
                db.query(UserQuest)
                .filter(UserQuest.id == record.id, UserQuest.status != QuestStatus.CLAIMED.value)
                .update(
                    {
                        UserQuest.status: QuestStatus.CLAIMED.value,
                        UserQuest.progress: progress,
                        UserQuest.completed_at: record.completed_at or now,
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                raise BadRequest("Reward already claimed")

        ledger.credit(db, user_id, int(quest.reward_points), description=f"Quest Reward: {quest.title}", now=now)
        balance = ledger.get_balance(db, user_id)

    logger.info("quests.claimed user_id=%s quest_id=%s reward=%s", user_id, quest_id, quest.reward_points)
    return ClaimResult(quest_id=quest_id, reward=int(quest.reward_points), balance=balance)
