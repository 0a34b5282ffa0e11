# User API - registration, login/logout, master password change

from fastapi import APIRouter, Depends, Header, Request, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..core import EventSeverity, EventType
from ..vault import CredentialOperations
from .responses import get_operations, raise_for_result
from .security import verify_session_token

router = APIRouter(prefix="/api", tags=["users"])


# Request Models
# Field rules are enforced by the vault operations, not here, so that
# failures come back in the vault's result shape.
class CredentialsRequest(BaseModel):
    username: str = ""
    password: str = ""


class ChangePasswordBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_password: str = ""
    new_password: str = ""
    confirm_password: str = ""


# Endpoints

@router.post("/users", status_code=status.HTTP_201_CREATED)
async def register(
    body: CredentialsRequest,
    ops: CredentialOperations = Depends(get_operations),
):
    """
    Create a user.

    Username: at least 3 characters, unique ignoring case.
    Password: at least 8 characters.
    """
    result = raise_for_result(ops.create_user(body.username, body.password))
    return result.to_dict()


@router.post("/session")
async def login(
    body: CredentialsRequest,
    request: Request,
    ops: CredentialOperations = Depends(get_operations),
):
    """
    Log in with username and master password.

    Returns a session token for the X-Session-Token header.
    """
    result = raise_for_result(ops.verify_master_password(body.username, body.password))
    token = request.app.state.sessions.issue(result.data["user"]["id"])
    return {**result.to_dict(), "token": token}


@router.delete("/session")
async def logout(
    request: Request,
    user_id: str = Depends(verify_session_token),
    x_session_token: str = Header(None),
    ops: CredentialOperations = Depends(get_operations),
):
    """Revoke the current session token."""
    request.app.state.sessions.revoke(x_session_token)
    ops.audit.log_event(
        event_type=EventType.USER_LOGOUT,
        severity=EventSeverity.INFO,
        message="Logout",
        details={"user_id": user_id},
    )
    return {"success": "Logged out."}


@router.post("/users/me/password")
async def change_password(
    body: ChangePasswordBody,
    request: Request,
    user_id: str = Depends(verify_session_token),
    x_session_token: str = Header(None),
    ops: CredentialOperations = Depends(get_operations),
):
    """
    Change the master password.

    Other sessions of the user are revoked; the calling session stays valid.
    """
    result = raise_for_result(ops.change_master_password(
        user_id,
        body.current_password,
        body.new_password,
        body.confirm_password,
    ))

    request.app.state.sessions.revoke_user(user_id, keep=x_session_token)
    return result.to_dict()
