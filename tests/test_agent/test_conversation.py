import pytest

from vibe_cli.conversation import Conversation, Message


def test_conversation_starts_with_system_message():
    conversation = Conversation("You are helpful.")

    assert len(conversation) == 1
    assert conversation.system_message == Message("system", "You are helpful.")
    assert conversation.last_user_message() is None


def test_snapshot_is_not_affected_by_later_appends():
    conversation = Conversation("sys")
    conversation.add("user", "hi")
    snapshot = conversation.snapshot()

    conversation.add("assistant", "hello")

    assert len(snapshot) == 2
    assert len(conversation) == 3
    assert [message.role for message in conversation] == ["system", "user", "assistant"]


def test_reset_keeps_only_system_message():
    conversation = Conversation("sys")
    conversation.add("user", "a")
    conversation.append(Message("assistant", "b"))

    conversation.reset()

    assert conversation.messages == (Message("system", "sys"),)


def test_set_system_prompt_replaces_first_message():
    conversation = Conversation("old")
    conversation.add("user", "question")

    conversation.set_system_prompt("new")

    assert conversation.system_message.content == "new"
    assert conversation.last_user_message().content == "question"
    assert len(conversation) == 2


def test_message_validates_role_and_content():
    with pytest.raises(ValueError):
        Message("tool", "x")
    with pytest.raises(ValueError):
        Message("user", None)

    assert Message("user", "hi").to_dict() == {"role": "user", "content": "hi"}
