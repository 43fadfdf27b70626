from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import get_current_user, require_user_id
from spotch.schemas.quest import ClaimResponse, QuestResponse
from spotch.services import quest_tracker

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/quests", response_model=list[QuestResponse])
async def list_quests(db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return [QuestResponse.model_validate(q) for q in quest_tracker.list_quests(db, user_id)]


@router.post("/quests/{quest_id}/claim", response_model=ClaimResponse)
async def claim_reward(quest_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return ClaimResponse.model_validate(quest_tracker.claim_reward(db, user_id, quest_id))
