"""단말 정보 기반 위치 조작 위험도 평가"""
from __future__ import annotations

from dataclasses import dataclass

from ..core.config import Settings
from ..schemas.evidence import DeviceTelemetry
from ..schemas.results import AntiSpoofingResult, SpoofingCheck


@dataclass(frozen=True)
class SpoofingPolicy:
    emulator_penalty: float = 0.3
    mock_location_penalty: float = 0.6
    prior_flag_penalty: float = 0.2
    risk_threshold: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "SpoofingPolicy":
        return cls(
            emulator_penalty=settings.spoofing_emulator_penalty,
            mock_location_penalty=settings.spoofing_mock_location_penalty,
            prior_flag_penalty=settings.spoofing_prior_flag_penalty,
            risk_threshold=settings.spoofing_risk_threshold,
        )


DEFAULT_POLICY = SpoofingPolicy()


def assess_device(telemetry: DeviceTelemetry | None, policy: SpoofingPolicy = DEFAULT_POLICY) -> AntiSpoofingResult:
    """
    단말 텔레메트리를 위험도 점수(0~1)로 변환합니다.

    텔레메트리가 없으면 조작 증거가 없는 것으로 보고 통과시킵니다.
    """
    if telemetry is None:
        return AntiSpoofingResult(passed=True, risk_score=0.0, message="No device telemetry supplied")

    risk = 0.0
    checks: list[SpoofingCheck] = []

    if telemetry.is_emulator:
        risk += policy.emulator_penalty
    checks.append(
        SpoofingCheck(
            check="emulator",
            passed=not telemetry.is_emulator,
            details="Device reports running in an emulator" if telemetry.is_emulator else "Physical device",
        )
    )

    if telemetry.is_mock_location:
        risk += policy.mock_location_penalty
    checks.append(
        SpoofingCheck(
            check="mock_location",
            passed=not telemetry.is_mock_location,
            details="Mock location provider enabled" if telemetry.is_mock_location else "Location provider genuine",
        )
    )

    if telemetry.prior_flag_count:
        risk += policy.prior_flag_penalty * telemetry.prior_flag_count
    checks.append(
        SpoofingCheck(
            check="prior_flags",
            passed=telemetry.prior_flag_count == 0,
            details=f"{telemetry.prior_flag_count} prior spoofing flag(s)",
        )
    )

    risk = min(max(risk, 0.0), 1.0)
    passed = risk <= policy.risk_threshold
    return AntiSpoofingResult(
        passed=passed,
        risk_score=risk,
        checks=tuple(checks),
        message="Device checks passed" if passed else f"Location spoofing suspected (risk {risk:.2f})",
    )
