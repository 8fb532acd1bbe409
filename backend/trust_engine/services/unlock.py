"""
스토리 챕터 잠금 해제 조건 평가

퀘스트 검증과 같은 위치/시간/QR 검증 함수를 공유하고, 비밀번호와 "이전 챕터 해제" 조건을 추가합니다.
평가 순서: 이전 챕터 → 위치 → 시간 → QR → 비밀번호. 처음 실패한 조건에서 중단하며 점수는 없습니다.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from ..core.errors import ConfigurationError
from ..core.security import verify_password
from ..schemas.chapters import (
    ChapterTimeCondition,
    StoryChapter,
    UnlockCheck,
    UnlockCondition,
    UnlockDecision,
    UnlockRecord,
    UnlockSubmission,
)
from .geolocation import verify_location
from .qr_codes import verify_qr_code
from .time_window import to_local, verify_time_window
from .verification import utcnow

MINUTES_PER_DAY = 24 * 60


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


class UnlockConditionEvaluator:
    def __init__(
        self,
        *,
        geo_verifier: Callable = verify_location,
        time_verifier: Callable = verify_time_window,
        qr_verifier: Callable = verify_qr_code,
        password_verifier: Callable[[str, str], bool] = verify_password,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.geo_verifier = geo_verifier
        self.time_verifier = time_verifier
        self.qr_verifier = qr_verifier
        self.password_verifier = password_verifier
        self.clock = clock

    def evaluate(
        self,
        conditions: UnlockCondition,
        submission: UnlockSubmission,
        *,
        chapter_number: int = 1,
        previous_unlocked: bool = False,
        now: datetime | None = None,
    ) -> UnlockDecision:
        now = now or self.clock()
        checks: list[UnlockCheck] = []

        def locked(check: UnlockCheck, reason: str) -> UnlockDecision:
            return UnlockDecision(unlocked=False, checks=(*checks, check), reason=reason)

        if conditions.require_previous_chapter and chapter_number > 1:
            if not previous_unlocked:
                reason = "Complete the previous chapter first"
                return locked(UnlockCheck(type="previousChapter", passed=False, message=reason), reason)
            checks.append(UnlockCheck(type="previousChapter", passed=True))

        location = conditions.location
        if location.enabled and location.target is not None:
            if submission.latitude is None or submission.longitude is None:
                reason = f"Go to: {location.name or location.target.name or 'the secret location'}"
                return locked(UnlockCheck(type="location", passed=False, message=reason), reason)
            gps = self.geo_verifier(submission.latitude, submission.longitude, location.target)
            check = UnlockCheck(type="location", passed=gps.passed, message=gps.message, distance=gps.distance_meters)
            if not gps.passed:
                return locked(check, gps.message)
            checks.append(check)

        if conditions.time.enabled:
            try:
                reason = self._time_reason(conditions.time, now)
            except ConfigurationError as exc:
                reason = f"Chapter time condition is misconfigured: {exc}"
            if reason is not None:
                return locked(UnlockCheck(type="time", passed=False, message=reason), reason)
            checks.append(UnlockCheck(type="time", passed=True))

        qr_code = conditions.qr_code
        if qr_code.enabled and qr_code.code_hash:
            if not submission.qr_code:
                reason = qr_code.hint or "Scan the QR code to unlock"
                return locked(UnlockCheck(type="qrCode", passed=False, message=reason), reason)
            qr = self.qr_verifier(submission.qr_code, qr_code.code_hash)
            if not qr.passed:
                return locked(UnlockCheck(type="qrCode", passed=False, message=qr.message), "Wrong QR code")
            checks.append(UnlockCheck(type="qrCode", passed=True, message=qr.message))

        password = conditions.password
        if password.enabled and password.hash:
            if not submission.password:
                reason = password.hint or "Enter the secret password"
                return locked(UnlockCheck(type="password", passed=False, message=reason), reason)
            if not self.password_verifier(submission.password, password.hash):
                reason = "Incorrect password"
                return locked(UnlockCheck(type="password", passed=False, message=reason), reason)
            checks.append(UnlockCheck(type="password", passed=True))

        return UnlockDecision(unlocked=True, checks=tuple(checks))

    def _time_reason(self, condition: ChapterTimeCondition, now: datetime) -> str | None:
        if condition.unlock_at is not None:
            unlock_at = to_local(condition.unlock_at, condition.timezone)
            if to_local(now, condition.timezone) < unlock_at:
                return f"This chapter unlocks on {unlock_at:%Y-%m-%d %H:%M} ({condition.timezone})"

        if condition.window is not None and condition.window.enabled:
            window = self.time_verifier(condition.window, now)
            if not window.passed:
                return window.message

        if condition.specific_time:
            local = to_local(now, condition.timezone)
            gap = abs(local.hour * 60 + local.minute - _minutes(condition.specific_time))
            gap = min(gap, MINUTES_PER_DAY - gap)
            if gap > condition.tolerance_minutes:
                return f"Come back at {condition.specific_time}"

        return None

    def record_unlock(
        self,
        chapter: StoryChapter,
        user_id: str,
        decision: UnlockDecision,
        now: datetime | None = None,
    ) -> tuple[StoryChapter, UnlockRecord]:
        """해제 기록을 추가한 새 챕터를 반환합니다. 기존 기록은 절대 삭제하지 않습니다."""
        if not decision.unlocked:
            raise ValueError("잠금 해제되지 않은 결정은 기록할 수 없습니다.")
        existing = chapter.unlock_for(user_id)
        if existing is not None:
            return chapter, existing
        record = UnlockRecord(user_id=user_id, unlocked_at=now or self.clock(), method=decision.method or "open")
        return chapter.model_copy(update={"unlocked_by": (*chapter.unlocked_by, record)}), record
