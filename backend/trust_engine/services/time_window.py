"""
시간 창 검증

규칙 우선순위 (처음 일치한 규칙이 최종 결정):
1. 오늘 날짜(설정 시간대 기준)에 해당하는 특정 날짜 창
2. 요일 제한
3. 기본 일일 시작/종료 시각
4. 제한 없음
"""
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.errors import ConfigurationError
from ..schemas.requirements import TimeWindowConfig
from ..schemas.results import TimeWindowResult


def load_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown time zone: {tz_name!r}") from exc


def to_local(instant: datetime, tz_name: str) -> datetime:
    """naive datetime은 UTC로 간주하고 지정 시간대로 변환합니다."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(load_zone(tz_name))


def format_hhmm(local: datetime) -> str:
    return local.strftime("%H:%M")


def js_weekday(local: datetime) -> int:
    """0 = 일요일 ... 6 = 토요일"""
    return (local.weekday() + 1) % 7


def _window_result(current: str, start: str, end: str, outside_message: str) -> TimeWindowResult:
    within = start <= current <= end
    return TimeWindowResult(
        passed=within,
        submission_time=current,
        allowed_window=f"{start} - {end}",
        message="Within time window" if within else outside_message,
    )


def verify_time_window(config: TimeWindowConfig, captured_at: datetime | None = None) -> TimeWindowResult:
    now = captured_at or datetime.now(timezone.utc)
    local = to_local(now, config.timezone)
    current = format_hhmm(local)

    for window in config.specific_dates:
        if window.date == local.date():
            return _window_result(current, window.start_time, window.end_time, "Outside allowed time window")

    if config.days_of_week and js_weekday(local) not in config.days_of_week:
        return TimeWindowResult(
            passed=False,
            submission_time=current,
            allowed_window=None,
            message="Quest not available today",
        )

    if config.start_time and config.end_time:
        return _window_result(
            current,
            config.start_time,
            config.end_time,
            f"Come back between {config.start_time} and {config.end_time}",
        )

    return TimeWindowResult(passed=True, submission_time=current, message="No time restriction")
