"""
Broadcast snapshot schema for Flip 7.

Game.get_snapshot() builds these read-only views so the transport layer
can serialize state without touching engine internals.
"""

from typing import Optional

from pydantic import BaseModel


class CardView(BaseModel):
    """A single card as shown to clients."""
    id: str
    type: str
    value: Optional[int] = None
    action: Optional[str] = None
    modifier: Optional[str] = None
    bonus: Optional[int] = None


class PlayerView(BaseModel):
    """Per-player round state."""
    id: str
    name: str
    score: int
    round_score: int
    status: str
    is_host: bool
    is_connected: bool
    cards: list[CardView]


class SettingsView(BaseModel):
    """Table settings."""
    target_score: int
    max_players: int
    turn_timeout_seconds: int


class PendingView(BaseModel):
    """The interaction the engine is waiting on, if any."""
    kind: str
    player_id: str
    eligible_targets: list[str] = []
    duplicate_card: Optional[CardView] = None
    during_deal: bool = False


class GameSnapshot(BaseModel):
    """Full game state for broadcasting."""
    game_id: str
    phase: str
    round: int
    players: list[PlayerView]
    current_player_index: int
    current_player_id: Optional[str] = None
    dealer_index: int
    deck_count: int
    discard_pile: list[CardView]
    settings: SettingsView
    pending: Optional[PendingView] = None
    draw_three_remaining: int = 0
    winner_id: Optional[str] = None
    winner_ids: list[str] = []

    def to_dict(self) -> dict:
        """JSON-ready payload."""
        return self.model_dump(mode="json")
