"""
Card model and scoring for Flip 7.

Three card kinds share one immutable Card record, tagged by CardType:
    - NUMBER:   value 0-12
    - ACTION:   Freeze, Draw Three or Bust Insurance
    - MODIFIER: flat bonus (+2/+4/+6/+8) or the x2 Doubler

Scoring (score_hand):
    1. Sum all number card values
    2. If a Doubler is held, double that sum
    3. Add every flat bonus
    4. Seven or more distinct number values add a fixed 15-point bonus

Action cards never score.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from constants import UNIQUE_NUMBERS_BONUS, UNIQUE_NUMBERS_FOR_BONUS


class CardType(str, Enum):
    """Top-level card kind."""

    NUMBER = "number"
    ACTION = "action"
    MODIFIER = "modifier"


class ActionType(str, Enum):
    """
    Action card kinds.

    FREEZE: ends the target's round, banking their current score.
    DRAW_THREE: target must draw three cards in sequence.
    BUST_INSURANCE: discard a duplicate instead of busting, once.
    """

    FREEZE = "freeze"
    DRAW_THREE = "draw_three"
    BUST_INSURANCE = "bust_insurance"


class ModifierType(str, Enum):
    """Modifier card kinds."""

    FLAT_BONUS = "flat_bonus"
    DOUBLER = "doubler"


@dataclass(frozen=True)
class Card:
    """
    An immutable Flip 7 card.

    Only the field matching the card's type is meaningful: value for
    numbers, action for action cards, modifier (and bonus for flat
    bonuses) for modifiers.

    Attributes:
        id: Unique identifier assigned when the deck is built.
        type: Card kind tag.
        value: Face value 0-12 (number cards).
        action: Action kind (action cards).
        modifier: Modifier kind (modifier cards).
        bonus: Points added by a flat bonus modifier.
    """

    id: str
    type: CardType
    value: Optional[int] = None
    action: Optional[ActionType] = None
    modifier: Optional[ModifierType] = None
    bonus: int = 0

    @classmethod
    def number(cls, value: int, card_id: Optional[str] = None) -> "Card":
        return cls(id=card_id or f"num-{value}", type=CardType.NUMBER, value=value)

    @classmethod
    def of_action(cls, action: ActionType, card_id: Optional[str] = None) -> "Card":
        return cls(id=card_id or f"act-{action.value}", type=CardType.ACTION, action=action)

    @classmethod
    def flat_bonus(cls, amount: int, card_id: Optional[str] = None) -> "Card":
        return cls(
            id=card_id or f"mod-plus{amount}",
            type=CardType.MODIFIER,
            modifier=ModifierType.FLAT_BONUS,
            bonus=amount,
        )

    @classmethod
    def doubler(cls, card_id: Optional[str] = None) -> "Card":
        return cls(id=card_id or "mod-x2", type=CardType.MODIFIER, modifier=ModifierType.DOUBLER)

    def is_number(self) -> bool:
        return self.type == CardType.NUMBER

    def is_action(self, action: Optional[ActionType] = None) -> bool:
        """True for action cards, optionally of one specific kind."""
        if self.type != CardType.ACTION:
            return False
        return action is None or self.action == action

    def is_modifier(self) -> bool:
        return self.type == CardType.MODIFIER

    def label(self) -> str:
        """Short human-readable label, used in logs."""
        if self.type == CardType.NUMBER:
            return str(self.value)
        if self.type == CardType.ACTION:
            return self.action.value
        if self.modifier == ModifierType.DOUBLER:
            return "x2"
        return f"+{self.bonus}"

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        data = {"id": self.id, "type": self.type.value}
        if self.type == CardType.NUMBER:
            data["value"] = self.value
        elif self.type == CardType.ACTION:
            data["action"] = self.action.value
        else:
            data["modifier"] = self.modifier.value
            if self.modifier == ModifierType.FLAT_BONUS:
                data["bonus"] = self.bonus
        return data


@dataclass
class PlayedCard:
    """
    A card placed in a player's hand.

    Modifiers are standalone cards in Flip 7, so attached_modifiers stays
    empty; it is kept so clients can render a uniform hand shape.
    """

    card: Card
    attached_modifiers: list[Card] = field(default_factory=list)


def unique_number_count(cards: Iterable[Card]) -> int:
    """Count distinct number values among the given cards."""
    return len({card.value for card in cards if card.type == CardType.NUMBER})


def score_hand(cards: Iterable[Card]) -> int:
    """
    Calculate a round score from a hand snapshot.

    Pure function of the cards: the doubler applies to the number sum only,
    flat bonuses are added afterwards, and 7+ distinct numbers add the
    fixed bonus.

    Args:
        cards: The cards held this round.

    Returns:
        Round score for the hand.
    """
    number_total = 0
    distinct_values: set[int] = set()
    has_doubler = False
    flat_bonus = 0

    for card in cards:
        if card.type == CardType.NUMBER:
            number_total += card.value
            distinct_values.add(card.value)
        elif card.type == CardType.MODIFIER:
            if card.modifier == ModifierType.DOUBLER:
                has_doubler = True
            else:
                flat_bonus += card.bonus

    total = number_total * 2 if has_doubler else number_total
    total += flat_bonus

    if len(distinct_values) >= UNIQUE_NUMBERS_FOR_BONUS:
        total += UNIQUE_NUMBERS_BONUS

    return total
