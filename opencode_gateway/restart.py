"""Restart control files shared between the launcher and the gateway plugin."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .paths import GatewayPaths

_U64_MAX = 2**64 - 1


class RestartState(str, enum.Enum):
    """Lifecycle state of a supervised restart."""

    IDLE = "idle"
    PENDING = "pending"
    RESTARTING = "restarting"
    FAILED = "failed"


def _field(data: dict[str, Any], key: str, kind: type, required: bool) -> Any:
    if key not in data or (not required and data[key] is None):
        if required:
            raise ValueError(f"missing field `{key}`")
        return None
    value = data[key]
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U64_MAX:
            raise ValueError(f"field `{key}` must be an unsigned 64-bit integer")
    elif not isinstance(value, kind):
        raise ValueError(f"field `{key}` must be a {kind.__name__}")
    return value


def _require_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


@dataclass(frozen=True)
class RestartRequest:
    """A restart asked for by the plugin."""

    requested_at_ms: int
    requested_by: str

    @classmethod
    def from_dict(cls, data: Any) -> RestartRequest:
        """Build a request from its decoded JSON object."""
        data = _require_object(data)
        return cls(
            requested_at_ms=_field(data, "requestedAtMs", int, True),
            requested_by=_field(data, "requestedBy", str, True),
        )


@dataclass(frozen=True)
class RestartStatus:
    """Progress of a restart as reported to the plugin."""

    state: RestartState
    requested_at_ms: int | None = None
    started_at_ms: int | None = None
    completed_at_ms: int | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form, leaving out fields that are unset."""
        fields = {
            "state": self.state.value,
            "requestedAtMs": self.requested_at_ms,
            "startedAtMs": self.started_at_ms,
            "completedAtMs": self.completed_at_ms,
            "lastError": self.last_error,
        }
        return {key: value for key, value in fields.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Any) -> RestartStatus:
        """Build a status from its decoded JSON object."""
        data = _require_object(data)
        state_text = _field(data, "state", str, True)
        try:
            state = RestartState(state_text)
        except ValueError as error:
            raise ValueError(f"unknown restart state: {state_text}") from error
        return cls(
            state=state,
            requested_at_ms=_field(data, "requestedAtMs", int, False),
            started_at_ms=_field(data, "startedAtMs", int, False),
            completed_at_ms=_field(data, "completedAtMs", int, False),
            last_error=_field(data, "lastError", str, False),
        )


def now_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def _remove_if_present(path: Path) -> None:
    if path.exists():
        path.unlink()


def reset_restart_control_files(paths: GatewayPaths) -> None:
    """Drop any pending request and mark the restart state idle."""
    _remove_if_present(paths.restart_request_file)
    write_restart_status(paths, RestartStatus(state=RestartState.IDLE))


def read_restart_request(paths: GatewayPaths) -> RestartRequest | None:
    """Return the pending restart request, or None when there is none."""
    path = paths.restart_request_file
    if not path.exists():
        return None
    return RestartRequest.from_dict(json.loads(path.read_text(encoding="utf-8")))


def clear_restart_request(paths: GatewayPaths) -> None:
    """Remove the restart request file if it exists."""
    _remove_if_present(paths.restart_request_file)


def write_restart_status(paths: GatewayPaths, status: RestartStatus) -> None:
    """Write the status file as pretty-printed JSON."""
    text = json.dumps(status.to_dict(), indent=2, ensure_ascii=False)
    paths.restart_status_file.write_text(f"{text}\n", encoding="utf-8")


def write_restart_failure(
    paths: GatewayPaths, requested_at_ms: int, started_at_ms: int, message: str
) -> None:
    """Clear the request and record that the restart failed."""
    clear_restart_request(paths)
    write_restart_status(
        paths,
        RestartStatus(
            state=RestartState.FAILED,
            requested_at_ms=requested_at_ms,
            started_at_ms=started_at_ms,
            completed_at_ms=now_ms(),
            last_error=message,
        ),
    )