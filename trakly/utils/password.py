# trakly/utils/password.py
from typing import Optional
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    # Google-only accounts have no password to compare against
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)
