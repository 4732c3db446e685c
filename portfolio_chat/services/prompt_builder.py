"""
PROMPT BUILDER
==============

Assembles the system prompt sent with every chat request:

  <profile document>
  [CONVERSATION HISTORY: role: content lines, only if there is history]

  PERSONALITY & COMMUNICATION STYLE ...

  MEETING SCHEDULING GUIDANCE:
  <suggest-the-call text OR only-if-asked text>

  RESPONSE GUIDELINES ...

build_messages() turns (system prompt, user message) into the role-separated
message list that providers receive and that is logged as the outbound payload.
"""

from typing import Dict, List, Sequence

from config import (
    MEETING_DEFAULT_GUIDANCE,
    MEETING_GUIDANCE_HEADER,
    MEETING_SUGGEST_GUIDANCE,
    PERSONALITY_PROMPT,
    RESPONSE_GUIDELINES,
)
from portfolio_chat.models import ConversationTurn


HISTORY_HEADER = "CONVERSATION HISTORY:"


def render_history(history: Sequence[ConversationTurn]) -> str:
    """Return the history block (with its leading blank line), or "" for no history."""
    if not history:
        return ""
    lines = "\n".join(f"{turn.role}: {turn.content}" for turn in history)
    return f"\n\n{HISTORY_HEADER}\n{lines}"


def meeting_guidance(suggest_meeting: bool, calendly_url: str) -> str:
    if suggest_meeting:
        return MEETING_SUGGEST_GUIDANCE.format(calendly_url=calendly_url)
    return MEETING_DEFAULT_GUIDANCE


def build_system_prompt(
    profile: str,
    history: Sequence[ConversationTurn],
    suggest_meeting: bool,
    persona_name: str = "Thalen",
    calendly_url: str = "https://calendly.com/thalenabadia/30min",
) -> str:
    personality = PERSONALITY_PROMPT.format(persona=persona_name)
    guidelines = RESPONSE_GUIDELINES.format(persona=persona_name)
    guidance = meeting_guidance(suggest_meeting, calendly_url)

    return (
        f"{profile}{render_history(history)}\n\n"
        f"{personality}\n\n"
        f"{MEETING_GUIDANCE_HEADER}\n{guidance}\n\n"
        f"{guidelines}"
    )


def build_messages(system_prompt: str, user_message: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_message},
    ]
