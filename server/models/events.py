"""
Event definitions for Flip 7 engine notifications.

The engine emits one GameEvent per transition so collaborators (transport,
activity log, round summaries) can react without polling the snapshot.
Events are in-memory records; nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import json


class EventType(str, Enum):
    """All possible event types in a Flip 7 game."""

    # Lifecycle events
    GAME_STARTED = "game_started"
    ROUND_STARTED = "round_started"
    ROUND_ENDED = "round_ended"
    GAME_ENDED = "game_ended"

    # Gameplay events
    CARD_DRAWN = "card_drawn"
    PLAYER_STOPPED = "player_stopped"
    PLAYER_BUSTED = "player_busted"
    PLAYER_FROZEN = "player_frozen"
    DRAW_THREE_STARTED = "draw_three_started"
    INSURANCE_USED = "insurance_used"
    INSURANCE_PASSED = "insurance_passed"
    DECK_RESHUFFLED = "deck_reshuffled"

    # Prompts for a specific player's decision
    BUST_CHOICE_PROMPT = "bust_choice_prompt"
    FREEZE_TARGET_PROMPT = "freeze_target_prompt"
    DRAW_THREE_TARGET_PROMPT = "draw_three_target_prompt"

    # Connectivity
    PLAYER_DISCONNECTED = "player_disconnected"
    PLAYER_RECONNECTED = "player_reconnected"
    PLAYER_RENAMED = "player_renamed"


@dataclass
class GameEvent:
    """
    An immutable record of something that happened in a game.

    Attributes:
        event_type: The type of event (from EventType enum).
        game_id: UUID of the game this event belongs to.
        sequence_num: Monotonically increasing sequence number within game.
        timestamp: When the event occurred (UTC).
        player_id: ID of player the event concerns (if applicable).
        data: Event-specific payload data.
    """

    event_type: EventType
    game_id: str
    sequence_num: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    player_id: Optional[str] = None
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize event to dictionary for JSON transport."""
        return {
            "event_type": self.event_type.value,
            "game_id": self.game_id,
            "sequence_num": self.sequence_num,
            "timestamp": self.timestamp.isoformat(),
            "player_id": self.player_id,
            "data": self.data,
        }

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, d: dict) -> "GameEvent":
        """Deserialize event from dictionary."""
        timestamp = d["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        return cls(
            event_type=EventType(d["event_type"]),
            game_id=d["game_id"],
            sequence_num=d["sequence_num"],
            timestamp=timestamp,
            player_id=d.get("player_id"),
            data=d.get("data", {}),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "GameEvent":
        """Deserialize event from JSON string."""
        return cls.from_dict(json.loads(json_str))
