# codejudge/assessment/auth_utils.py
from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from codejudge.assessment import config


def decode_token(token: str, secret_key: Optional[str] = None) -> dict:
    secret_key = secret_key or config.JWT_SECRET_KEY
    if not secret_key:
        # No signing secret configured: no token can be trusted
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")
    try:
        return jwt.decode(token, secret_key, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def verify_token(authorization: str = Header(None)) -> dict:
    """Requires a valid bearer token; returns its payload (sub, role, exp)"""
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return decode_token(token)


def optional_token(authorization: str = Header(None)) -> Optional[dict]:
    """Anonymous callers get None; a present but invalid token is still a 401"""
    token = _bearer_token(authorization)
    if token is None:
        return None
    return decode_token(token)


def is_admin(principal: Optional[dict]) -> bool:
    return bool(principal) and principal.get("role") == "admin"
