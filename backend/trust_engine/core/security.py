from passlib.context import CryptContext

from .config import settings

pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """설정된 해시 스킴으로 챕터 비밀번호 해시 생성"""
    if settings.password_hash_scheme not in pwd_context.schemes():
        raise ValueError(f"지원하지 않는 해시 스킴: {settings.password_hash_scheme}")
    return pwd_context.hash(password, scheme=settings.password_hash_scheme)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # 인식할 수 없는 해시 형식
        return False
