"""
core/tracing.py -- Span-per-operation instrumentation for every service layer.

Pattern: Decorator. traced() wraps a function or method in an OpenTelemetry
span so controllers, the service, the hasher, the token issuer and the store
all report the same shape of telemetry without repeating start/status/end
boilerplate in every body:

    @traced(
        "repository.GetUserByEmail",
        attributes=lambda args: {"email": args["email"]},
        result_attributes=lambda user: {"user_id": user.id},
        success="User retrieved",
    )
    def find_by_email(self, email: str) -> User: ...

Contract:
  - The span is the current span for the duration of the call, so nested
    traced calls become children and the body may add attributes through
    trace.get_current_span().
  - The span ends on every exit path (return, typed error, unexpected error).
  - On an exception: an event "<name> failed" carrying error.type and
    error.message, status ERROR with the exception message, then the exception
    is re-raised untouched.
  - On success: an event carrying the confirmation message, status OK.
  - Return values and exceptions are never altered.

Security:
  Attribute keys that name a password, hash, secret or token are dropped
  before they reach the span, whatever the extractor returns. Only str, bool,
  int and float values are attached; None values are skipped.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

TRACER_NAME = "authservice"

_SENSITIVE_MARKERS = ("password", "hash", "secret", "token")

F = TypeVar("F", bound=Callable[..., Any])

AttributeExtractor = Callable[[Mapping[str, Any]], Mapping[str, Any]]
ResultExtractor = Callable[[Any], Mapping[str, Any]]


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def safe_attributes(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    """Filter an attribute mapping down to what may be attached to a span."""
    if not attributes:
        return {}
    return {
        key: value
        for key, value in attributes.items()
        if value is not None and isinstance(value, (str, bool, int, float)) and not _is_sensitive(key)
    }


def set_span_attributes(span: Span, attributes: Mapping[str, Any] | None) -> None:
    """Attach attributes to a span through the same sensitivity filter traced() uses."""
    cleaned = safe_attributes(attributes)
    if cleaned:
        span.set_attributes(cleaned)


def _record_failure(span: Span, name: str, exc: BaseException) -> None:
    reason = str(exc) or type(exc).__name__
    span.add_event(
        f"{name} failed",
        attributes={"error.type": type(exc).__name__, "error.message": reason},
    )
    span.set_status(Status(StatusCode.ERROR, reason))


def _record_success(span: Span, message: str) -> None:
    span.add_event(message)
    # The OTel API only keeps a description on ERROR statuses, so the
    # confirmation message lives on the event above.
    span.set_status(Status(StatusCode.OK))


def traced(
    name: str,
    *,
    attributes: AttributeExtractor | None = None,
    result_attributes: ResultExtractor | None = None,
    success: str | None = None,
) -> Callable[[F], F]:
    """Wrap a callable in a span named ``name`` (convention: "<layer>.<Operation>").

    Args:
        name:              Span name, e.g. "service.LoginUser".
        attributes:        Called with the bound call arguments (by parameter
                           name, defaults applied) before the body runs.
        result_attributes: Called with the return value after a successful call.
        success:           Confirmation message recorded on success. Defaults
                           to "<name> succeeded".
    """
    success_message = success or f"{name} succeeded"

    def decorator(func: F) -> F:
        signature = inspect.signature(func)

        def _request_attributes(args: tuple, kwargs: dict) -> dict[str, Any]:
            if attributes is None:
                return {}
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            return safe_attributes(attributes(bound.arguments))

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(
                name,
                record_exception=False,
                set_status_on_exception=False,
            ) as span:
                try:
                    set_span_attributes(span, _request_attributes(args, kwargs))
                    result = func(*args, **kwargs)
                except BaseException as exc:
                    _record_failure(span, name, exc)
                    raise
                if result_attributes is not None and result is not None:
                    set_span_attributes(span, result_attributes(result))
                _record_success(span, success_message)
                return result

        return wrapper  # type: ignore[return-value]

    return decorator
