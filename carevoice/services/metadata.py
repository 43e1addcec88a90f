"""
Metadata aggregation for conversations.

Pure functions: given a conversation's messages and the latest AI
response, compute the derived analytics without touching storage.
"""
import math
from datetime import datetime
from typing import Iterable, List, Optional

from carevoice.adapters.responder import AIResponse
from carevoice.models.schemas import USER_ROLE, Conversation, ConversationMetadata, Message, utcnow


def compute_duration(messages: List[Message]) -> Optional[int]:
    """
    Seconds from the first user message to the last message.

    Rounds half up and never goes negative. None when the conversation
    has no user message.
    """
    first_user = next((m for m in messages if m.role == USER_ROLE), None)
    if first_user is None:
        return None

    elapsed = (messages[-1].timestamp - first_user.timestamp).total_seconds()
    return max(0, int(math.floor(elapsed + 0.5)))


def merge_intents(existing: Iterable[str], new: Iterable[str]) -> List[str]:
    """Set union of intent labels, keeping first-seen order. Case-sensitive."""
    return list(dict.fromkeys([*existing, *new]))


def recompute(
    conversation: Conversation,
    ai_response: AIResponse,
    now: Optional[datetime] = None,
) -> ConversationMetadata:
    """
    Compute updated metadata after a turn has been appended.

    - updated: current time, never earlier than the previous value or
      the last message
    - duration: see compute_duration; left as-is without user messages
    - sentiment: replaced only by a non-empty value
    - intents: union with the new labels; empty input changes nothing
    """
    current = conversation.metadata
    messages = conversation.messages

    candidates = [now or utcnow(), current.updated, current.created]
    if messages:
        candidates.append(messages[-1].timestamp)
    updated = max(candidates)

    duration = compute_duration(messages) if messages else None
    if duration is None:
        duration = current.duration

    sentiment = current.sentiment
    if ai_response.sentiment:
        sentiment = ai_response.sentiment

    intents = list(current.intents)
    if ai_response.intents:
        intents = merge_intents(intents, ai_response.intents)

    return ConversationMetadata(
        created=current.created,
        updated=updated,
        duration=duration,
        sentiment=sentiment,
        intents=intents,
    )
