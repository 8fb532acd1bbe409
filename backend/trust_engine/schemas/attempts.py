from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from ..core.constants import AttemptStatus, FailureCode
from .evidence import SubmissionEvidence
from .results import VerificationResult


class AttemptFailure(BaseModel):
    code: FailureCode | None = None
    reason: str
    can_retry: bool


class CompletionAttempt(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    quest_id: str
    user_id: str
    evidence: SubmissionEvidence
    status: AttemptStatus = AttemptStatus.PENDING
    verification: VerificationResult = Field(default_factory=VerificationResult)
    failure: AttemptFailure | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None


class AttemptOut(BaseModel):
    id: str
    quest_id: str
    status: AttemptStatus
    can_retry: bool | None = None
    failure_code: FailureCode | None = None
    reason: str | None = None
    verification: VerificationResult
