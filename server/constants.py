"""
Card composition and rule constants for Flip 7.

This module is the single source of truth for the fixed 94-card population
and the scoring constants. Table defaults (target score, seat cap, delays)
come from config.py so they can be tuned via environment variables.

Deck composition (94 cards):
    - Number cards 0-12: value v appears v times, 0 appears once (79 cards)
    - Freeze x4, Draw Three x3, Bust Insurance x3 (10 cards)
    - Modifiers +2, +4, +6, +8 and x2 (5 cards)
"""

from config import config


# =============================================================================
# Card Population
# =============================================================================

MIN_NUMBER_VALUE = 0
MAX_NUMBER_VALUE = 12

FREEZE_COUNT = 4
DRAW_THREE_COUNT = 3
BUST_INSURANCE_COUNT = 3

FLAT_BONUS_VALUES: tuple[int, ...] = (2, 4, 6, 8)
DOUBLER_COUNT = 1

DECK_SIZE = 94


def number_card_count(value: int) -> int:
    """How many copies of a number card exist (one 0, otherwise v copies of v)."""
    return 1 if value == 0 else value


# =============================================================================
# Scoring
# =============================================================================

UNIQUE_NUMBERS_FOR_BONUS = 7
UNIQUE_NUMBERS_BONUS = 15

DRAW_THREE_CARDS = 3


# =============================================================================
# Game Constants
# =============================================================================

MIN_PLAYERS = config.MIN_PLAYERS
DEBUG_MIN_PLAYERS = 1
MAX_PLAYERS = config.MAX_PLAYERS
DEFAULT_TARGET_SCORE = config.TARGET_SCORE
DEFAULT_TURN_TIMEOUT_SECONDS = config.TURN_TIMEOUT_SECONDS
ROUND_START_DELAY_SECONDS = config.ROUND_START_DELAY_SECONDS
