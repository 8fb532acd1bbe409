from ..core.constants import DEFAULT_LAYERS, LAYER_PRIORITY, VerificationLayer
from ..schemas.requirements import QuestRequirement


def order_layers(layers) -> list[VerificationLayer]:
    """우선순위 순서로 정렬하고 중복을 제거합니다."""
    requested = {VerificationLayer(layer) for layer in layers}
    return [layer for layer in LAYER_PRIORITY if layer in requested]


def select_layers(requirement: QuestRequirement) -> list[VerificationLayer]:
    """
    퀘스트에 적용할 검증 레이어 목록을 결정합니다.

    명시된 레이어 목록이 있으면 그대로 사용하고, 없으면 설정된 필드로 자동 감지합니다.
    아무것도 감지되지 않으면 GPS + AI 비전을 기본값으로 사용합니다.
    """
    if requirement.verification_layers:
        return order_layers(requirement.verification_layers)

    layers: list[VerificationLayer] = []
    if requirement.has_location:
        layers.append(VerificationLayer.GPS)
    if requirement.has_time_window:
        layers.append(VerificationLayer.TIME)
    if requirement.has_qr_code:
        layers.append(VerificationLayer.QR_SCAN)
    if requirement.has_ai_verification:
        layers.append(VerificationLayer.AI_VISION)

    if not layers:
        layers.extend(DEFAULT_LAYERS)
    return order_layers(layers)
