"""Structured error codes for CloudCost tools and the pricing updater."""

from enum import Enum
from typing import Iterable, List, Optional, TypedDict


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_TOOL = "unknown_tool"
    UNKNOWN_MODEL = "unknown_model"
    UNKNOWN_INSTANCE = "unknown_instance"
    UNKNOWN_PROVIDER = "unknown_provider"
    UNKNOWN_SERVICE = "unknown_service"
    UNKNOWN_PLAN = "unknown_plan"
    UPDATE_IN_PROGRESS = "update_in_progress"
    INTERNAL = "internal_error"


class ErrorPayload(TypedDict, total=False):
    error: str
    detail: str
    field: str
    valid: List[str]


def error_response(code: ErrorCode, detail: str = "", **extra) -> ErrorPayload:
    payload: ErrorPayload = {"error": code.value, "detail": detail}
    payload.update(extra)  # type: ignore[typeddict-item]
    return payload


class CloudCostError(Exception):
    code = ErrorCode.INTERNAL

    def to_payload(self) -> ErrorPayload:
        return error_response(self.code, str(self))


class ToolArgumentError(CloudCostError, ValueError):
    """Tool arguments failed schema validation.

    ``field`` is the dotted path of the offending argument, or an empty
    string when the problem is with the arguments object itself.
    """

    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}" if field else message)

    def to_payload(self) -> ErrorPayload:
        return error_response(self.code, self.message, field=self.field)


_KIND_CODES = {
    "model": ErrorCode.UNKNOWN_MODEL,
    "instance": ErrorCode.UNKNOWN_INSTANCE,
    "provider": ErrorCode.UNKNOWN_PROVIDER,
    "service": ErrorCode.UNKNOWN_SERVICE,
    "plan": ErrorCode.UNKNOWN_PLAN,
}


class UnknownIdentifierError(CloudCostError, LookupError):
    """A provider, model, instance, service or plan name is not in the catalog."""

    def __init__(self, kind: str, name: str, valid: Iterable[str], hint: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.valid = sorted(valid)
        self.code = _KIND_CODES.get(kind, ErrorCode.INTERNAL)
        message = f"Unknown {kind}: {name}. Available: {', '.join(self.valid)}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)

    def to_payload(self) -> ErrorPayload:
        return error_response(self.code, str(self), valid=self.valid)


class UnknownToolError(CloudCostError, KeyError):
    code = ErrorCode.UNKNOWN_TOOL

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")

    def __str__(self) -> str:
        return f"Unknown tool: {self.name}"


class UpdateInProgressError(CloudCostError, RuntimeError):
    code = ErrorCode.UPDATE_IN_PROGRESS

    def __init__(self):
        super().__init__("Update already in progress")
