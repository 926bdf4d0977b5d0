from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

_SCALARS = (str, int, float, bool, type(None))

MAX_PARAMETER_LENGTH = 200


def _to_serializable(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_PARAMETER_LENGTH:
        return f"{value[:MAX_PARAMETER_LENGTH]}... [{len(value)} chars]"
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, dict):
        return {str(k): _to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_serializable(v) for v in value]
    if isinstance(value, BaseModel):
        return _to_serializable(value.model_dump(mode="json"))
    return _to_serializable(repr(value))


class ErrorContext(BaseModel):
    """Describes the guarded call so a failure can be classified and recovered."""

    model_config = ConfigDict(frozen=True)

    service_name: str
    operation_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """The ``(service, operation)`` pair used to look up fallbacks."""
        return self.service_name, self.operation_name

    def serializable(self) -> Dict[str, Any]:
        """Return a JSON-safe dict for responses and the event log.

        Non-primitive parameters are reduced to ``repr`` and long strings are
        truncated; fallbacks still receive the full ``parameters``.
        """
        return {
            "service": self.service_name,
            "operation": self.operation_name,
            "parameters": _to_serializable(self.parameters),
            "user_id": self.user_id,
        }
