import hashlib

from ..schemas.results import QRResult


def hash_code(code: str) -> str:
    """스캔 문자열(UTF-8)의 SHA-256 소문자 hex 해시"""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def verify_qr_code(scanned: str | None, code_hash: str) -> QRResult:
    if not scanned:
        return QRResult(passed=False, code_matched=False, message="QR code not scanned")

    matched = hash_code(scanned) == code_hash
    return QRResult(
        passed=matched,
        code_matched=matched,
        message="QR code verified" if matched else "Invalid QR code",
    )
