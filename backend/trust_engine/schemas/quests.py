from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import QuestStatus
from .requirements import QuestRequirement


class QuestBudget(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_completions: int | None = Field(default=None, ge=1)  # None = 무제한
    max_completions_per_user: int = Field(default=1, ge=1)
    daily_limit: int | None = Field(default=None, ge=1)
    reward_amount: float = Field(default=0, ge=0)
    total_reward_allocated: float = Field(default=0, ge=0)


class Quest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    status: QuestStatus = QuestStatus.ACTIVE
    start_date: datetime | None = None
    end_date: datetime | None = None
    requirement: QuestRequirement = Field(default_factory=QuestRequirement)
    budget: QuestBudget = Field(default_factory=QuestBudget)
