# API Security - Session tokens
#
# A random session token is issued when a user logs in with the master
# password. Protected endpoints require it in the X-Session-Token header
# and resolve it to the user id it was issued for.

import secrets
import threading
from typing import Dict, Optional

from fastapi import Header, HTTPException, Request, status


class SessionRegistry:
    """
    In-memory map of session token -> user id.

    Tokens live until logout or process restart. Tokens are 256-bit
    random values from secrets.token_urlsafe().
    """

    def __init__(self):
        self._sessions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def issue(self, user_id: str) -> str:
        """Create a new session token for ``user_id``."""
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user_id
        return token

    def resolve(self, token: Optional[str]) -> Optional[str]:
        """Return the user id bound to ``token``, or None."""
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def revoke(self, token: str) -> bool:
        """Drop a token. Returns True if it existed."""
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def revoke_user(self, user_id: str, keep: Optional[str] = None) -> int:
        """Drop every token of a user except ``keep`` (after a master password change)."""
        with self._lock:
            stale = [t for t, uid in self._sessions.items() if uid == user_id and t != keep]
            for token in stale:
                del self._sessions[token]
        return len(stale)


async def verify_session_token(
    request: Request,
    x_session_token: Optional[str] = Header(None),
) -> str:
    """
    FastAPI dependency returning the user id behind X-Session-Token.

    Usage in routes:
        @router.get("/banks")
        async def list_banks(user_id: str = Depends(verify_session_token)): ...

    Raises:
        HTTPException: 401 if the token is missing or unknown
    """
    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header"
        )

    user_id = request.app.state.sessions.resolve(x_session_token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    return user_id
