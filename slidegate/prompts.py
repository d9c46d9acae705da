"""Prompt construction for slide-deck generation."""

from typing import List

from slidegate.models import ChatMessage

SYSTEM_PROMPT = (
    "You create high-quality, concise slide decks. Output plain text only "
    "with titles and bodies per slide, separated by blank lines."
)

SHORT_INPUT_WORDS = 12

_GUIDANCE = """You will rewrite USER content into a compelling slide deck. Use the provided content as the foundation and build upon it logically. Avoid empty sections and placeholders.
{short_note}
Requirements:
- Produce 6-10 slides based on the user's content.
- Each slide must have a concise Title on the first line and a Body block below.
- Prefer bullets with '-' for lists. Use short sentences and concrete, specific details.
- Stay true to the user's content and intent. Don't add unrelated information.
- Absolutely no empty bodies. No section titles without substance.
- Tone: {tone}. Length: {length}.
- Output FORMAT strictly as plain text: each slide separated by ONE blank line. Do not number slides. Do not add extra commentary.

USER CONTENT:
{user_text}
"""

_SHORT_NOTE = (
    "The USER text is short. Expand it with relevant context and neutral, "
    "clearly illustrative details.\n"
)


def is_short_input(text: str) -> bool:
    return len(text.split()) < SHORT_INPUT_WORDS


def build_messages(raw: str, tone: str, length: str) -> List[ChatMessage]:
    """Build the system and user messages for a slide-deck completion."""
    user_text = raw.strip()
    guidance = _GUIDANCE.format(
        short_note=_SHORT_NOTE if is_short_input(user_text) else "",
        tone=tone,
        length=length,
        user_text=user_text,
    )
    return [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(role="user", content=guidance),
    ]
