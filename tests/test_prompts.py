import pytest

from opencode_gateway.prompts import (
    Command,
    CommandError,
    CommandErrorCode,
    CommandKind,
    ExecutionInput,
    FileCommandPart,
    FilePromptPart,
    Message,
    MessagePart,
    Prompt,
    TextCommandPart,
    TextPromptPart,
    parse_optional,
    parse_required,
)


def _prompt(key="mailbox:1", text="hello"):
    return Prompt(key, [TextPromptPart(text)])


def test_parse_required_strips_value():
    assert parse_required("  hello  ", "field") == "hello"


def test_parse_required_rejects_blank():
    with pytest.raises(ValueError, match="promptKey must not be empty"):
        parse_required("   ", "promptKey")


@pytest.mark.parametrize("value", [None, "", "   "])
def test_parse_optional_blank_is_none(value):
    assert parse_optional(value) is None


def test_parse_optional_strips_value():
    assert parse_optional(" photo.png ") == "photo.png"


def test_text_prompt_part_trims_text():
    assert TextPromptPart("  describe ").text == "describe"


def test_text_prompt_part_rejects_empty():
    with pytest.raises(ValueError, match="promptPart text must not be empty"):
        TextPromptPart("")


def test_file_prompt_part_normalizes_fields():
    part = FilePromptPart(" image/png ", "  ", " /tmp/photo.png ")
    assert part == FilePromptPart("image/png", None, "/tmp/photo.png")


def test_file_prompt_part_rejects_missing_path():
    with pytest.raises(ValueError, match="promptPart localPath must not be empty"):
        FilePromptPart("image/png", None, " ")


def test_prompt_requires_parts():
    with pytest.raises(ValueError, match="opencode prompt requires at least one part"):
        Prompt("mailbox:1", [])


def test_prompt_requires_key():
    with pytest.raises(ValueError, match="promptKey must not be empty"):
        Prompt(" ", [TextPromptPart("hello")])


def test_prompt_stores_parts_as_tuple_in_order():
    parts = [TextPromptPart("describe"), FilePromptPart("image/png", None, "/tmp/photo.png")]
    prompt = Prompt("mailbox:1", parts)
    assert prompt.parts == tuple(parts)


def test_command_parts_validate():
    with pytest.raises(ValueError, match="commandPart partId must not be empty"):
        TextCommandPart("", "hello")
    with pytest.raises(ValueError, match="commandPart mimeType must not be empty"):
        FileCommandPart("prt_1", "", None, "/tmp/photo.png")


def test_message_part_validates_kind():
    with pytest.raises(ValueError, match="messagePart type must not be empty"):
        MessagePart("msg_1", "part_1", " ", "hello", False)


def test_message_validates_role_and_keeps_parts():
    part = MessagePart("msg_1", "part_1", "text", "hello", False)
    message = Message("msg_1", " assistant ", None, [part])
    assert message.role == "assistant"
    assert message.parts == (part,)
    with pytest.raises(ValueError, match="message role must not be empty"):
        Message("msg_1", "", None, [])


def test_execution_input_requires_prompts():
    with pytest.raises(ValueError, match="opencode execution requires at least one prompt"):
        ExecutionInput("telegram:42", None, "progressive", 400, [])


def test_execution_input_rejects_blank_session_id():
    with pytest.raises(ValueError, match="persistedSessionId must not be empty"):
        ExecutionInput("telegram:42", "  ", "progressive", 400, [_prompt()])


def test_execution_input_checks_conversation_key_first():
    with pytest.raises(ValueError, match="conversationKey must not be empty"):
        ExecutionInput(" ", None, "progressive", 400, [])


def test_execution_input_trims_fields():
    prompt = _prompt()
    execution = ExecutionInput(" telegram:42 ", " ses_stale ", "progressive", 400, [prompt])
    assert execution.conversation_key == "telegram:42"
    assert execution.persisted_session_id == "ses_stale"
    assert execution.prompts == (prompt,)


@pytest.mark.parametrize(
    ("command", "kind"),
    [
        (Command.lookup_session("ses_stale"), "lookupSession"),
        (Command.create_session("Gateway telegram:42"), "createSession"),
        (Command.wait_until_idle("ses_stale"), "waitUntilIdle"),
        (Command.append_prompt("ses_stale", "msg_1", []), "appendPrompt"),
        (Command.send_prompt_async("ses_stale", "msg_1", []), "sendPromptAsync"),
        (Command.await_prompt_response("ses_stale", "msg_1"), "awaitPromptResponse"),
        (Command.read_message("ses_stale", "msg_1"), "readMessage"),
        (Command.list_messages("ses_stale"), "listMessages"),
    ],
)
def test_command_kinds(command, kind):
    assert command.kind.value == kind


def test_create_session_has_no_session_id():
    command = Command.create_session("Gateway telegram:42")
    assert command.session_id is None
    assert command.title == "Gateway telegram:42"


def test_session_commands_carry_session_id():
    command = Command.send_prompt_async(
        "ses_fresh", "msg_gateway_mailbox_2", [TextCommandPart("prt_gateway_mailbox_2_0", "second")]
    )
    assert command.session_id == "ses_fresh"
    assert command.parts == (TextCommandPart("prt_gateway_mailbox_2_0", "second"),)
    assert command == Command.send_prompt_async(
        "ses_fresh", "msg_gateway_mailbox_2", [TextCommandPart("prt_gateway_mailbox_2_0", "second")]
    )


def test_command_error_holds_fields():
    error = CommandError(
        command_kind=CommandKind.WAIT_UNTIL_IDLE.value,
        session_id="ses_stale",
        code=CommandErrorCode.MISSING_SESSION,
        message="Session not found: ses_stale",
    )
    assert error.code is CommandErrorCode.MISSING_SESSION
    assert error.command_kind == "waitUntilIdle"