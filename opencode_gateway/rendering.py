"""Message and part ids for prompts, and rendering of reply text."""

from __future__ import annotations

from collections.abc import Iterable

from .prompts import (
    CommandPart,
    FileCommandPart,
    MessagePart,
    Prompt,
    TextCommandPart,
    TextPromptPart,
)


def sanitize_prompt_key(value: str) -> str:
    """Lower-case ASCII letters and digits; every other character becomes ``_``."""
    return "".join(
        char.lower() if char.isascii() and char.isalnum() else "_" for char in value
    )


def prompt_message_id(prompt: Prompt) -> str:
    """The message id a prompt is sent under."""
    return f"msg_gateway_{sanitize_prompt_key(prompt.prompt_key)}"


def prompt_part_id(prompt: Prompt, index: int) -> str:
    """The part id of the prompt's part at ``index``."""
    return f"prt_gateway_{sanitize_prompt_key(prompt.prompt_key)}_{index}"


def prompt_command_parts(prompt: Prompt) -> list[CommandPart]:
    """Turn a prompt's parts into command parts, keeping their order."""
    parts: list[CommandPart] = []
    for index, part in enumerate(prompt.parts):
        part_id = prompt_part_id(prompt, index)
        if isinstance(part, TextPromptPart):
            parts.append(TextCommandPart(part_id, part.text))
        else:
            parts.append(
                FileCommandPart(part_id, part.mime_type, part.file_name, part.local_path)
            )
    return parts


def render_visible_text(message_id: str, parts: Iterable[MessagePart]) -> str:
    """Join the visible, non-empty text parts of one message with newlines."""
    return "\n".join(
        part.text
        for part in parts
        if part.message_id == message_id
        and part.kind == "text"
        and not part.ignored
        and part.text
    )