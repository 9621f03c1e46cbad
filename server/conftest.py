"""
Shared fixtures for the Flip 7 engine tests.

Most tests need a game whose draw order is known in advance. StackedDeck
replaces the shuffled population with an explicit list (first entry is
drawn first), and FakeScheduler captures the next-round timer so tests
can fire it by hand.
"""

from typing import Callable, Iterable, Optional

import pytest

from cards import Card
from deck import Deck
from game import Game, Player
from models.events import EventType, GameEvent


class StackedDeck(Deck):
    """Deck that deals exactly the given cards, in order, and never shuffles."""

    def __init__(self, draw_order: Iterable[Card]):
        self.draw_order = list(draw_order)
        super().__init__(seed=0)

    def build(self) -> None:
        self.cards = list(reversed(self.draw_order))

    def shuffle(self) -> None:
        pass


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks instead of running them."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def fire(self) -> None:
        """Run the most recent timer, unless it was cancelled."""
        timer = self.timers[-1]
        if not timer.cancelled:
            timer.callback()


class EventCollector:
    """Collects emitted events for verification."""

    def __init__(self):
        self.events: list[GameEvent] = []

    def __call__(self, event: GameEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[GameEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def types(self) -> list[EventType]:
        return [e.event_type for e in self.events]


def build_game(
    draw_order: Iterable[Card],
    num_players: int = 3,
    dealer_idx: Optional[int] = None,
    events: Optional[EventCollector] = None,
    **kwargs,
) -> Game:
    """
    Create and start a game over a stacked deck.

    Players are p1..pN. The dealer defaults to the last seat: the
    dealer receives the first card and p1 takes the first turn.
    """
    players = [Player(id=f"p{i}", name=f"Player {i}") for i in range(1, num_players + 1)]
    kwargs.setdefault("scheduler", FakeScheduler())
    game = Game(players=players, deck=StackedDeck(draw_order), **kwargs)
    if events is not None:
        game.set_event_emitter(events)
    game.start_game(dealer_idx=num_players - 1 if dealer_idx is None else dealer_idx)
    return game


@pytest.fixture
def make_game():
    return build_game


@pytest.fixture
def events():
    return EventCollector()
