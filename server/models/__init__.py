"""Models package for the Flip 7 engine."""

from .events import EventType, GameEvent
from .snapshot import CardView, GameSnapshot, PendingView, PlayerView, SettingsView

__all__ = [
    "EventType",
    "GameEvent",
    "CardView",
    "GameSnapshot",
    "PendingView",
    "PlayerView",
    "SettingsView",
]
