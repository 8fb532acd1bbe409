from .ai import AIVisionRequirements, ClassifierResponse
from .attempts import AttemptFailure, AttemptOut, CompletionAttempt
from .chapters import (
    ChapterTimeCondition,
    LocationCondition,
    PasswordCondition,
    QRCondition,
    StoryChapter,
    UnlockCheck,
    UnlockCondition,
    UnlockDecision,
    UnlockRecord,
    UnlockResponse,
    UnlockSubmission,
)
from .evidence import DeviceTelemetry, LocationFix, SubmissionEvidence
from .quests import Quest, QuestBudget
from .requirements import (
    AIRequirement,
    QRRequirement,
    QuestRequirement,
    SpecificDateWindow,
    TargetLocation,
    TimeWindowConfig,
)
from .results import (
    AIVisionResult,
    AntiSpoofingResult,
    DetectedObject,
    GPSResult,
    LayerResult,
    QRResult,
    SpoofingCheck,
    TimeWindowResult,
    VerificationResult,
)

__all__ = [
    "AIVisionRequirements",
    "ClassifierResponse",
    "AttemptFailure",
    "AttemptOut",
    "CompletionAttempt",
    "ChapterTimeCondition",
    "LocationCondition",
    "PasswordCondition",
    "QRCondition",
    "StoryChapter",
    "UnlockCheck",
    "UnlockCondition",
    "UnlockDecision",
    "UnlockRecord",
    "UnlockResponse",
    "UnlockSubmission",
    "DeviceTelemetry",
    "LocationFix",
    "SubmissionEvidence",
    "Quest",
    "QuestBudget",
    "AIRequirement",
    "QRRequirement",
    "QuestRequirement",
    "SpecificDateWindow",
    "TargetLocation",
    "TimeWindowConfig",
    "AIVisionResult",
    "AntiSpoofingResult",
    "DetectedObject",
    "GPSResult",
    "LayerResult",
    "QRResult",
    "SpoofingCheck",
    "TimeWindowResult",
    "VerificationResult",
]
