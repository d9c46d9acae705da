"""Tests for slide-deck prompt construction."""

from slidegate.prompts import SYSTEM_PROMPT, build_messages, is_short_input


def test_messages_have_system_and_user_roles() -> None:
    messages = build_messages("  Launch plan for the new mobile app  ", "bold", "long")

    assert [m.role for m in messages] == ["system", "user"]
    assert messages[0].content == SYSTEM_PROMPT
    assert "Tone: bold. Length: long." in messages[1].content
    assert messages[1].content.rstrip().endswith("Launch plan for the new mobile app")


def test_short_input_asks_for_expansion() -> None:
    short = build_messages("AI in schools", "inspiring", "medium")[1].content
    long_text = " ".join(["word"] * 20)
    full = build_messages(long_text, "inspiring", "medium")[1].content

    assert "The USER text is short" in short
    assert "The USER text is short" not in full


def test_is_short_input_threshold() -> None:
    assert is_short_input(" ".join(["w"] * 11))
    assert not is_short_input(" ".join(["w"] * 12))
