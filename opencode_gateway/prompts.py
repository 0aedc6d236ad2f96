"""Typed prompts, commands and results exchanged with an OpenCode execution host."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union


def parse_required(value: str, field: str) -> str:
    """Return ``value`` stripped, raising ValueError when nothing is left."""
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field} must not be empty")
    return trimmed


def parse_optional(value: str | None) -> str | None:
    """Return ``value`` stripped, or None when it is missing or blank."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _set(instance: object, name: str, value: Any) -> None:
    object.__setattr__(instance, name, value)


@dataclass(frozen=True)
class TextPromptPart:
    """A piece of prompt text."""

    text: str

    def __post_init__(self) -> None:
        _set(self, "text", parse_required(self.text, "promptPart text"))


@dataclass(frozen=True)
class FilePromptPart:
    """A local file attached to a prompt."""

    mime_type: str
    file_name: str | None
    local_path: str

    def __post_init__(self) -> None:
        _set(self, "mime_type", parse_required(self.mime_type, "promptPart mimeType"))
        _set(self, "file_name", parse_optional(self.file_name))
        _set(self, "local_path", parse_required(self.local_path, "promptPart localPath"))


PromptPart = Union[TextPromptPart, FilePromptPart]


@dataclass(frozen=True)
class Prompt:
    """One prompt to deliver, identified by a stable key."""

    prompt_key: str
    parts: tuple[PromptPart, ...]

    def __post_init__(self) -> None:
        _set(self, "prompt_key", parse_required(self.prompt_key, "promptKey"))
        parts = tuple(self.parts)
        if not parts:
            raise ValueError("opencode prompt requires at least one part")
        _set(self, "parts", parts)


@dataclass(frozen=True)
class TextCommandPart:
    """A text part as sent to the host, carrying its part id."""

    part_id: str
    text: str

    def __post_init__(self) -> None:
        _set(self, "part_id", parse_required(self.part_id, "commandPart partId"))
        _set(self, "text", parse_required(self.text, "commandPart text"))


@dataclass(frozen=True)
class FileCommandPart:
    """A file part as sent to the host, carrying its part id."""

    part_id: str
    mime_type: str
    file_name: str | None
    local_path: str

    def __post_init__(self) -> None:
        _set(self, "part_id", parse_required(self.part_id, "commandPart partId"))
        _set(self, "mime_type", parse_required(self.mime_type, "commandPart mimeType"))
        _set(self, "file_name", parse_optional(self.file_name))
        _set(self, "local_path", parse_required(self.local_path, "commandPart localPath"))


CommandPart = Union[TextCommandPart, FileCommandPart]


@dataclass(frozen=True)
class MessagePart:
    """One part of a message reported by the host."""

    message_id: str
    part_id: str
    kind: str
    text: str | None = None
    ignored: bool = False

    def __post_init__(self) -> None:
        _set(self, "message_id", parse_required(self.message_id, "messagePart messageId"))
        _set(self, "part_id", parse_required(self.part_id, "messagePart partId"))
        _set(self, "kind", parse_required(self.kind, "messagePart type"))


@dataclass(frozen=True)
class Message:
    """A message in a session, with its parts."""

    message_id: str
    role: str
    parent_id: str | None = None
    parts: tuple[MessagePart, ...] = ()

    def __post_init__(self) -> None:
        _set(self, "message_id", parse_required(self.message_id, "message messageId"))
        _set(self, "role", parse_required(self.role, "message role"))
        _set(self, "parts", tuple(self.parts))


@dataclass(frozen=True)
class ExecutionInput:
    """Everything needed to run a batch of prompts in one conversation."""

    conversation_key: str
    persisted_session_id: str | None
    mode: Any
    flush_interval_ms: int
    prompts: tuple[Prompt, ...]

    def __post_init__(self) -> None:
        _set(
            self,
            "conversation_key",
            parse_required(self.conversation_key, "conversationKey"),
        )
        if self.persisted_session_id is not None:
            _set(
                self,
                "persisted_session_id",
                parse_required(self.persisted_session_id, "persistedSessionId"),
            )
        prompts = tuple(self.prompts)
        if not prompts:
            raise ValueError("opencode execution requires at least one prompt")
        _set(self, "prompts", prompts)


class CommandKind(str, enum.Enum):
    """The commands a host can be asked to run."""

    LOOKUP_SESSION = "lookupSession"
    CREATE_SESSION = "createSession"
    WAIT_UNTIL_IDLE = "waitUntilIdle"
    APPEND_PROMPT = "appendPrompt"
    SEND_PROMPT_ASYNC = "sendPromptAsync"
    AWAIT_PROMPT_RESPONSE = "awaitPromptResponse"
    READ_MESSAGE = "readMessage"
    LIST_MESSAGES = "listMessages"


@dataclass(frozen=True)
class Command:
    """A request for the host; which fields are set depends on ``kind``."""

    kind: CommandKind
    session_id: str | None = None
    title: str | None = None
    message_id: str | None = None
    parts: tuple[CommandPart, ...] = field(default=())

    @classmethod
    def lookup_session(cls, session_id: str) -> Command:
        """Ask whether a session still exists."""
        return cls(CommandKind.LOOKUP_SESSION, session_id=session_id)

    @classmethod
    def create_session(cls, title: str) -> Command:
        """Ask for a new session with the given title."""
        return cls(CommandKind.CREATE_SESSION, title=title)

    @classmethod
    def wait_until_idle(cls, session_id: str) -> Command:
        """Ask the host to wait until the session is idle."""
        return cls(CommandKind.WAIT_UNTIL_IDLE, session_id=session_id)

    @classmethod
    def append_prompt(
        cls, session_id: str, message_id: str, parts: Iterable[CommandPart]
    ) -> Command:
        """Add a prompt to the session without starting a reply."""
        return cls(
            CommandKind.APPEND_PROMPT,
            session_id=session_id,
            message_id=message_id,
            parts=tuple(parts),
        )

    @classmethod
    def send_prompt_async(
        cls, session_id: str, message_id: str, parts: Iterable[CommandPart]
    ) -> Command:
        """Send a prompt and let the reply run in the background."""
        return cls(
            CommandKind.SEND_PROMPT_ASYNC,
            session_id=session_id,
            message_id=message_id,
            parts=tuple(parts),
        )

    @classmethod
    def await_prompt_response(cls, session_id: str, message_id: str) -> Command:
        """Wait for the reply to a sent prompt."""
        return cls(
            CommandKind.AWAIT_PROMPT_RESPONSE,
            session_id=session_id,
            message_id=message_id,
        )

    @classmethod
    def read_message(cls, session_id: str, message_id: str) -> Command:
        """Fetch one message of a session."""
        return cls(CommandKind.READ_MESSAGE, session_id=session_id, message_id=message_id)

    @classmethod
    def list_messages(cls, session_id: str) -> Command:
        """Fetch every message of a session."""
        return cls(CommandKind.LIST_MESSAGES, session_id=session_id)


class CommandErrorCode(enum.Enum):
    """Why a host command failed."""

    MISSING_SESSION = "missing_session"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CommandError:
    """A failure reported by the host for one command."""

    command_kind: str
    session_id: str | None
    code: CommandErrorCode
    message: str