"""
workflow_engines.tracer -- Engine invocation tracer emitting WORKFLOW_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    resolver invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected arguments), a short outcome summary and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure resolver layer.
    Does NOT introduce I/O into engines; emits a log record only.
    Uses its own logger under the ``workflow_kernel`` namespace so the
    kernel's StructuredFormatter renders it.

Invariants enforced:
    - Fingerprint computation is deterministic: values are canonicalized
      (sets sorted, dataclasses field by field) and the hash is SHA-256
      truncated to 16 hex chars.
    - The decorator only reads arguments; it never mutates them.

Failure modes:
    - Fingerprint fields naming an absent argument are recorded as "null".

Usage:
    from workflow_engines.tracer import traced_engine

    @traced_engine("history", "1.0", fingerprint_fields=("member_id",))
    def most_recent_relevant_action(history, member_id, member_group_ids):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger("workflow_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonicalize(dataclasses.asdict(value))
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected arguments.

    Only the fields listed in fingerprint_fields are included.  Missing
    fields are recorded as "null".  Returns a 16-char hex digest prefix.
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        parts.append(f"{field}={_canonicalize(arguments.get(field))}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _summarize(result: Any) -> str:
    if result is None:
        return "none"
    if isinstance(result, bool):
        return str(result).lower()
    if isinstance(result, tuple):
        return f"{len(result)} item(s)"
    return type(result).__name__


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits WORKFLOW_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "history").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Argument names (positional or keyword) to
            include in the input fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.debug(
                "WORKFLOW_ENGINE_TRACE",
                extra={
                    "trace_type": "WORKFLOW_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "outcome": _summarize(result),
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
