"""
MEETING SUGGESTION CLASSIFIER
=============================

Decides whether the system prompt should tell the model to offer a call
(Calendly link) in its reply. Pure function of (history, current message):
no LLM, no state, same input always gives the same answer.

RULES (any one is enough):
  1. 3+ exchanges AND the current message has a collaboration keyword.
  2. 5+ exchanges, whatever was said.
  3. Any earlier turn had a collaboration keyword.
  4. The current message mentions "calendly" or "schedule".

An exchange is one user message; the current message counts, so an empty
history means 1 exchange. Keyword matching is plain lower-cased substring
containment, so "projector" matches "project".
"""

from typing import Iterable, Sequence

from portfolio_chat.models import ConversationTurn


COLLABORATION_KEYWORDS = (
    "collaborate",
    "work together",
    "partnership",
    "project",
    "hire",
    "job",
    "internship",
    "opportunity",
    "connect",
    "meet",
    "call",
    "discuss",
    "interested in",
    "tell me more",
    "how can we",
    "would you be interested",
)

SCHEDULING_TERMS = ("calendly", "schedule")


def _contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


def should_suggest_meeting(history: Sequence[ConversationTurn], current_message: str) -> bool:
    """Return True if the reply should include the scheduling call-to-action."""
    total_exchanges = len(history) + 1

    current_lower = current_message.lower()
    has_current_keywords = _contains_any(current_lower, COLLABORATION_KEYWORDS)

    history_text = " ".join(turn.content for turn in history).lower()
    has_history_keywords = _contains_any(history_text, COLLABORATION_KEYWORDS)

    return (
        (total_exchanges >= 3 and has_current_keywords)
        or total_exchanges >= 5
        or has_history_keywords
        or _contains_any(current_lower, SCHEDULING_TERMS)
    )
