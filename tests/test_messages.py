import pytest

from sandboxed_dialog.exceptions import MessageValidationError
from sandboxed_dialog.messages import Message, Role, ToolResultEvent


def test_string_becomes_user_message():
    assert Message.coerce("hello") == Message("user", "hello")


def test_mapping_and_role_enum():
    assert Message.coerce({"role": Role.ASSISTANT, "content": "x"}) == Message("assistant", "x")


def test_invalid_message_keeps_value():
    with pytest.raises(MessageValidationError) as exc_info:
        Message.coerce({"content": "x"})
    assert exc_info.value.value == {"content": "x"}
    assert isinstance(exc_info.value, ValueError)


def test_event_type_tags():
    event = ToolResultEvent(id="1", result=3)
    assert event.type == "tool_result"
    assert event.error is None
