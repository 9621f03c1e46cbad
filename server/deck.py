"""
The Flip 7 draw pile.

The deck is built and shuffled once when a game starts. After that, cards
only leave it; discarded cards come back in bulk via return_cards() when
the pile runs dry, and the caller shuffles them in.
"""

import random
from typing import Optional

from cards import ActionType, Card
from constants import (
    BUST_INSURANCE_COUNT,
    DOUBLER_COUNT,
    DRAW_THREE_COUNT,
    FLAT_BONUS_VALUES,
    FREEZE_COUNT,
    MAX_NUMBER_VALUE,
    MIN_NUMBER_VALUE,
    number_card_count,
)


class Deck:
    """
    An ordered pile of undrawn cards. The top of the deck is the end of
    the list.

    For replays, the deck can be initialized with a seed for
    deterministic shuffling.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        """
        Initialize a new deck with the full 94-card population, unshuffled.

        Args:
            seed: Optional random seed for deterministic shuffle.
                  If None, a random seed is generated and stored.
        """
        self.cards: list[Card] = []
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self._rng = random.Random(self.seed)
        self.build()

    def build(self) -> None:
        """Populate the deck with the fixed card composition, in a fixed order."""
        self.cards = []

        for value in range(MIN_NUMBER_VALUE, MAX_NUMBER_VALUE + 1):
            for copy in range(number_card_count(value)):
                self.cards.append(Card.number(value, card_id=f"num-{value}-{copy}"))

        action_counts = (
            (ActionType.FREEZE, FREEZE_COUNT),
            (ActionType.DRAW_THREE, DRAW_THREE_COUNT),
            (ActionType.BUST_INSURANCE, BUST_INSURANCE_COUNT),
        )
        for action, count in action_counts:
            for copy in range(count):
                self.cards.append(Card.of_action(action, card_id=f"act-{action.value}-{copy}"))

        for amount in FLAT_BONUS_VALUES:
            self.cards.append(Card.flat_bonus(amount, card_id=f"mod-plus{amount}"))
        for copy in range(DOUBLER_COUNT):
            self.cards.append(Card.doubler(card_id=f"mod-x2-{copy}"))

    def shuffle(self) -> None:
        """Randomize the order of cards in place (Fisher-Yates)."""
        self._rng.shuffle(self.cards)

    def reset(self) -> None:
        """Rebuild the full population and shuffle it."""
        self.build()
        self.shuffle()

    def draw(self) -> Optional[Card]:
        """
        Draw the top card from the deck.

        Returns:
            The drawn Card, or None if deck is empty.
        """
        if self.cards:
            return self.cards.pop()
        return None

    def draw_many(self, count: int) -> list[Card]:
        """Draw up to count cards, stopping early if the deck runs out."""
        drawn = []
        for _ in range(count):
            card = self.draw()
            if card is None:
                break
            drawn.append(card)
        return drawn

    def return_cards(self, cards: list[Card]) -> None:
        """
        Put cards back into the deck without shuffling.

        Used when the discard pile is recycled; call shuffle() afterwards.
        """
        self.cards.extend(cards)

    @property
    def size(self) -> int:
        return len(self.cards)

    def cards_remaining(self) -> int:
        """Return the number of cards left in the deck."""
        return len(self.cards)

    def is_empty(self) -> bool:
        return not self.cards

    def __len__(self) -> int:
        return len(self.cards)
