"""Error classification and recovery dispatch around fallible operations.

A guarded call moves through::

    Attempting ──ok──▶ Succeeded
        │
        └─fail─▶ Classifying ──▶ Recovering ──ok──▶ Succeeded
                      │               │
                      └──────────────▶└─fail─▶ Rejected

Each failure is recorded to the event log, classified into an
:class:`~app.services.errors.ErrorKind`, and handed to the one strategy
registered for that kind.  A recovered result is returned as though the
operation had succeeded; otherwise a :class:`GuardError` carrying the
original error, the :class:`ErrorContext` and a timestamp is raised.

Kinds are normally declared by the failing component.  Matching on the
error message is kept only for foreign exceptions that declare nothing and
is brittle against wording changes.
"""

import asyncio
import inspect
import logging
import re
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from app.models.error_context import ErrorContext
from app.services.errors import (
    DataValidationError,
    ErrorKind,
    GuardError,
    RecoveryExhausted,
    Rejected,
)
from app.services.event_log import EventLog, LoggingEventLog

logger = logging.getLogger(__name__)

Operation = Callable[[], Union[Any, Awaitable[Any]]]
Sleep = Callable[[float], Awaitable[None]]
FallbackFn = Callable[..., Union[Any, Awaitable[Any]]]


class GuardState(str, Enum):
    ATTEMPTING = "attempting"
    CLASSIFYING = "classifying"
    RECOVERING = "recovering"
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_CODES = {kind.value: kind for kind in ErrorKind}

_MESSAGE_PATTERNS: Tuple[Tuple[re.Pattern, ErrorKind], ...] = (
    (re.compile(r"rate limit|too many requests", re.IGNORECASE), ErrorKind.RATE_LIMITED),
    (re.compile(r"service unavailable", re.IGNORECASE), ErrorKind.SERVICE_UNAVAILABLE),
    (re.compile(r"validation", re.IGNORECASE), ErrorKind.VALIDATION_ERROR),
    (re.compile(r"connection refused|econnrefused", re.IGNORECASE), ErrorKind.CONNECTION_REFUSED),
)


def classify_error(error: BaseException) -> ErrorKind:
    """Return the kind declared by *error*, else infer one.

    Order: declared ``kind`` → string ``code`` → exception type → message text.
    """
    declared = getattr(error, "kind", None)
    if isinstance(declared, ErrorKind):
        return declared
    code = getattr(error, "code", None)
    if isinstance(code, str) and code in _CODES:
        return _CODES[code]
    if isinstance(error, (ConnectionRefusedError, httpx.ConnectError)):
        return ErrorKind.CONNECTION_REFUSED
    message = str(error)
    for pattern, kind in _MESSAGE_PATTERNS:
        if pattern.search(message):
            return kind
    return ErrorKind.UNKNOWN


async def _invoke(operation: Operation) -> Any:
    result = operation()
    if inspect.isawaitable(result):
        result = await result
    return result


# ---------------------------------------------------------------------------
# Validation repair
# ---------------------------------------------------------------------------

_DEFAULTS: Dict[str, Callable[[], Any]] = {
    "string": str,
    "number": int,
    "boolean": bool,
    "array": list,
    "object": dict,
}


def default_value(type_name: Optional[str]) -> Any:
    factory = _DEFAULTS.get(type_name or "")
    return factory() if factory else None


def coerce_value(value: Any, type_name: Optional[str]) -> Any:
    """Coerce *value* toward *type_name*; unconvertible values become the default."""
    try:
        if type_name == "string":
            return value if isinstance(value, str) else ("" if value is None else str(value))
        if type_name == "number":
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return value
            number = float(value)
            return int(number) if number.is_integer() else number
        if type_name == "boolean":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if type_name == "array":
            if isinstance(value, list):
                return value
            if isinstance(value, (tuple, set, frozenset)):
                return list(value)
            return [] if value is None else [value]
        if type_name == "object":
            return value if isinstance(value, dict) else {}
    except (TypeError, ValueError):
        return default_value(type_name)
    return value


def repair_data(data: Dict[str, Any], schema: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Fill missing required fields with defaults and coerce declared types."""
    fixed = dict(data)
    for field, rules in schema.items():
        if rules.get("required") and fixed.get(field) in (None, ""):
            fixed[field] = default_value(rules.get("type"))
    for field, value in list(fixed.items()):
        rules = schema.get(field)
        if rules and value is not None:
            fixed[field] = coerce_value(value, rules.get("type"))
    return fixed


# ---------------------------------------------------------------------------
# Recovery strategies
# ---------------------------------------------------------------------------


class RecoveryStrategy:
    """Turns one classified failure into a result or a :class:`GuardError`."""

    name = "recovery"

    async def execute(
        self, operation: Operation, error: Exception, context: ErrorContext, kind: ErrorKind
    ) -> Any:
        raise NotImplementedError


class RetryWithBackoff(RecoveryStrategy):
    """Re-run the operation with ``2 ** n`` second waits, *max_attempts* calls in total.

    The failed original call counts as the first attempt.
    """

    name = "retry_with_backoff"

    def __init__(self, max_attempts: int = 3, sleep: Sleep = asyncio.sleep):
        self.max_attempts = max_attempts
        self._sleep = sleep

    def _log_retry(self, retry_state) -> None:
        logger.warning(
            "Attempt %d/%d failed (%s) – retrying in %.0fs",
            retry_state.attempt_number,
            self.max_attempts,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
        )

    async def execute(self, operation, error, context, kind):
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number == 1:
                        raise error
                    return await _invoke(operation)
        except Exception as exc:
            raise RecoveryExhausted(exc, context, kind) from exc


class DelayAndRetry(RecoveryStrategy):
    """Wait a fixed cooldown, then re-run the operation exactly once."""

    name = "delay_and_retry"

    def __init__(self, cooldown: float = 5.0, sleep: Sleep = asyncio.sleep):
        self.cooldown = cooldown
        self._sleep = sleep

    async def execute(self, operation, error, context, kind):
        logger.warning("Rate limited on %s.%s – cooling down %.0fs", *context.key, self.cooldown)
        await self._sleep(self.cooldown)
        try:
            return await _invoke(operation)
        except Exception as exc:
            raise RecoveryExhausted(exc, context, kind) from exc


class FallbackRegistry:
    """Maps a ``(service, operation)`` pair to a degraded implementation.

    Fallbacks receive the guarded call's ``parameters`` as keyword arguments.
    """

    def __init__(self):
        self._fallbacks: Dict[Tuple[str, str], FallbackFn] = {}

    def register(self, service: str, operation: str, fallback: FallbackFn) -> FallbackFn:
        self._fallbacks[(service, operation)] = fallback
        return fallback

    def get(self, key: Tuple[str, str]) -> Optional[FallbackFn]:
        return self._fallbacks.get(key)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._fallbacks


class Fallback(RecoveryStrategy):
    name = "fallback"

    def __init__(self, registry: FallbackRegistry):
        self.registry = registry

    async def execute(self, operation, error, context, kind):
        fallback = self.registry.get(context.key)
        if fallback is None:
            raise Rejected(error, context, kind)
        logger.warning("Using fallback for %s.%s", *context.key)
        try:
            return await _invoke(lambda: fallback(**context.parameters))
        except Exception as exc:
            # Report the primary failure; the fallback's is kept as detail.
            exhausted = RecoveryExhausted(error, context, kind)
            exhausted.details["fallback_error"] = f"{type(exc).__name__}: {exc}"
            raise exhausted from exc


class ValidationRepair(RecoveryStrategy):
    """Return the offending data repaired toward its declared schema."""

    name = "validation_repair"

    async def execute(self, operation, error, context, kind):
        if isinstance(error, DataValidationError):
            data, schema = error.data, error.schema
        else:
            data, schema = context.parameters.get("data"), context.parameters.get("schema")
        if not isinstance(data, dict) or not isinstance(schema, dict):
            raise Rejected(error, context, kind)
        return repair_data(data, schema)


class Reject(RecoveryStrategy):
    name = "reject"

    async def execute(self, operation, error, context, kind):
        raise Rejected(error, context, kind)


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


class Guard:
    """Runs operations under classification and recovery.

    ``sleep`` is used for every backoff and cooldown wait; it is cancellable,
    so an aborted request abandons its retry schedule immediately.
    """

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        fallbacks: Optional[FallbackRegistry] = None,
        sleep: Sleep = asyncio.sleep,
        retry_attempts: int = 3,
        cooldown: float = 5.0,
    ):
        self.event_log = event_log or LoggingEventLog()
        self.fallbacks = fallbacks if fallbacks is not None else FallbackRegistry()
        self.strategies: Dict[ErrorKind, RecoveryStrategy] = {
            ErrorKind.CONNECTION_REFUSED: RetryWithBackoff(retry_attempts, sleep),
            ErrorKind.RATE_LIMITED: DelayAndRetry(cooldown, sleep),
            ErrorKind.SERVICE_UNAVAILABLE: Fallback(self.fallbacks),
            ErrorKind.VALIDATION_ERROR: ValidationRepair(),
            ErrorKind.UNKNOWN: Reject(),
        }

    def _record(self, error: Exception, context: ErrorContext, kind: Optional[ErrorKind]) -> None:
        details = {
            "message": str(error),
            "type": type(error).__name__,
            "kind": kind.value if kind else None,
            "service": context.service_name,
            "operation": context.operation_name,
            "context": context.serializable(),
        }
        try:
            self.event_log.record("error", details, context.user_id)
        except Exception as exc:
            logger.error("Event log rejected error record: %s", exc)

    def _transition(self, context: ErrorContext, state: GuardState) -> None:
        logger.debug("%s.%s → %s", context.service_name, context.operation_name, state.value)

    async def guard(self, operation: Operation, context: ErrorContext) -> Any:
        """Run *operation*; recover from its failure or raise a :class:`GuardError`."""
        self._transition(context, GuardState.ATTEMPTING)
        try:
            result = await _invoke(operation)
        except GuardError:
            # Already classified and recovered (or not) by an inner guard.
            raise
        except Exception as error:
            self._transition(context, GuardState.CLASSIFYING)
            kind = classify_error(error)
            self._record(error, context, kind)
            strategy = self.strategies.get(kind, self.strategies[ErrorKind.UNKNOWN])
            logger.warning(
                "%s.%s failed with %s (%s) – applying %s",
                context.service_name,
                context.operation_name,
                kind.value,
                error,
                strategy.name,
            )
            self._transition(context, GuardState.RECOVERING)
            try:
                result = await strategy.execute(operation, error, context, kind)
            except GuardError as rejection:
                self._transition(context, GuardState.REJECTED)
                logger.error(
                    "%s.%s rejected: %s", context.service_name, context.operation_name, rejection
                )
                raise
            logger.info("%s.%s recovered via %s", context.service_name, context.operation_name, strategy.name)
        self._transition(context, GuardState.SUCCEEDED)
        return result
