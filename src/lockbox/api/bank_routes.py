# Bank API - endpoints for a user's bank records
#
# All endpoints require a session token (X-Session-Token header); the user
# is the one the token was issued to.
#
# Form payloads are passed through untouched so that validation errors come
# back in the vault's own {error, code, errors} shape.

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from ..vault import CredentialOperations
from .responses import get_operations, raise_for_result
from .security import verify_session_token

router = APIRouter(prefix="/api/banks", tags=["banks"])


@router.get("")
async def list_banks(
    user_id: str = Depends(verify_session_token),
    ops: CredentialOperations = Depends(get_operations),
):
    """
    List the user's banks.

    Only the bank name and account number are decrypted. Use
    GET /api/banks/{id}/reveal for the full record.
    """
    return {"banks": ops.list_banks_for_user(user_id)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_bank(
    values: Dict[str, Any] = Body(...),
    user_id: str = Depends(verify_session_token),
    ops: CredentialOperations = Depends(get_operations),
):
    """Add a bank record. Optional secrets left blank are not stored."""
    result = raise_for_result(ops.add_bank(user_id, values))
    return result.to_dict()


@router.put("/{bank_id}")
async def update_bank(
    bank_id: str,
    values: Dict[str, Any] = Body(...),
    user_id: str = Depends(verify_session_token),
    ops: CredentialOperations = Depends(get_operations),
):
    """
    Update a bank record.

    Blank netBankingPassword, mobileBankingPassword or atmPin keep the
    stored value.
    """
    result = raise_for_result(ops.update_bank(user_id, bank_id, values))
    return result.to_dict()


@router.delete("/{bank_id}")
async def delete_bank(
    bank_id: str,
    user_id: str = Depends(verify_session_token),
    ops: CredentialOperations = Depends(get_operations),
):
    """Delete a bank record."""
    result = raise_for_result(ops.delete_bank(user_id, bank_id))
    return result.to_dict()


@router.get("/{bank_id}/reveal")
async def reveal_bank(
    bank_id: str,
    user_id: str = Depends(verify_session_token),
    ops: CredentialOperations = Depends(get_operations),
):
    """Get a bank record with every field decrypted."""
    result = raise_for_result(ops.reveal_bank(user_id, bank_id))
    return result.to_dict()
