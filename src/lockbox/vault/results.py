# Vault - Operation Results
#
# Every credential operation returns an OperationResult instead of raising:
#   {"success": "<message>", ...data}
#   {"error": "<message>", "code": "<error code>", "errors": [...]}

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import LockboxError, ValidationError


@dataclass
class OperationResult:
    success: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def succeeded(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=message, data=data)

    @classmethod
    def failed(cls, exc: LockboxError) -> "OperationResult":
        errors = []
        if isinstance(exc, ValidationError):
            errors = [e.to_dict() for e in exc.errors]
        return cls(error=str(exc), code=exc.code, errors=errors)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"success": self.success, **self.data}
        payload: Dict[str, Any] = {"error": self.error, "code": self.code}
        if self.errors:
            payload["errors"] = self.errors
        return payload
