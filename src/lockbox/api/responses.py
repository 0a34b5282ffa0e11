"""Translate OperationResult errors into HTTP responses."""

from fastapi import HTTPException, Request, status

from ..vault import CredentialOperations, OperationResult

# Error code -> HTTP status
STATUS_BY_CODE = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "user_not_found": status.HTTP_404_NOT_FOUND,
    "bank_not_found": status.HTTP_404_NOT_FOUND,
    "username_taken": status.HTTP_409_CONFLICT,
    "concurrent_modification": status.HTTP_409_CONFLICT,
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "incorrect_password": status.HTTP_401_UNAUTHORIZED,
    "unreadable_record": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Raise HTTPException for an error result; pass successes through."""
    if not result.ok:
        raise HTTPException(
            status_code=STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST),
            detail=result.to_dict(),
        )
    return result


def get_operations(request: Request) -> CredentialOperations:
    """FastAPI dependency: the app's CredentialOperations."""
    return request.app.state.operations
