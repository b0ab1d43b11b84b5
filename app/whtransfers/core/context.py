from __future__ import annotations

from contextvars import ContextVar, Token

_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_db_time_ms: ContextVar[float | None] = ContextVar("db_time_ms", default=None)


def bind_trace_id(trace_id: str | None) -> Token:
    return _trace_id.set(trace_id)


def unbind_trace_id(token: Token) -> None:
    _trace_id.reset(token)


def current_trace_id() -> str | None:
    return _trace_id.get()


def start_db_timer() -> Token:
    return _db_time_ms.set(0.0)


def stop_db_timer(token: Token) -> None:
    _db_time_ms.reset(token)


def add_db_time(delta_ms: float) -> None:
    current = _db_time_ms.get()
    if current is None:
        return
    _db_time_ms.set(current + delta_ms)


def get_db_time_ms() -> float | None:
    return _db_time_ms.get()
