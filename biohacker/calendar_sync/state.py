"""
Biohacker - OAuth State

The OAuth callback arrives from Google without our API key, so the user id
travels in `state`, signed with the master key and stamped with its issue
time.
"""

from typing import Optional
import hashlib
import hmac
import time

STATE_MAX_AGE = 600  # seconds


def _signature(secret: str, payload: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def sign_state(user_id: str, secret: str, issued_at: Optional[int] = None) -> str:
    issued = int(issued_at if issued_at is not None else time.time())
    payload = f"{user_id}.{issued}"
    return f"{payload}.{_signature(secret, payload)}"


def verify_state(
    state: str,
    secret: str,
    max_age: int = STATE_MAX_AGE,
    now: Optional[float] = None
) -> Optional[str]:
    """Return the user id if the state is authentic and fresh, else None"""
    try:
        payload, signature = state.rsplit(".", 1)
        user_id, issued = payload.rsplit(".", 1)
        issued_at = int(issued)
    except ValueError:
        return None

    if not user_id or not hmac.compare_digest(signature, _signature(secret, payload)):
        return None

    current = now if now is not None else time.time()
    if current - issued_at > max_age or issued_at - current > 60:
        return None

    return user_id
