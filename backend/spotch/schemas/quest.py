from typing import Optional

from pydantic import BaseModel


class QuestResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    reward_points: int
    condition_type: str
    condition_value: int
    status: str
    progress: int

    class Config:
        from_attributes = True


class ClaimResponse(BaseModel):
    quest_id: int
    reward: int
    balance: int

    class Config:
        from_attributes = True
