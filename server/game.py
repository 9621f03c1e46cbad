"""
Game logic for Flip 7.

This module implements the authoritative round state machine: turn order,
the deck/discard lifecycle, action card resolution and the scoring/round/
game lifecycle. Clients only submit intents (draw, stop, choose a target)
and read snapshots.

Flip 7 Rules Summary:
    - On your turn, draw one card or stop and bank your round score
    - Drawing a number you already hold is a bust: round score 0
    - Seven distinct numbers ends your round at once with a 15-point bonus
    - Freeze ends a player's round, banking what they hold
    - Draw Three forces a player to draw three cards in sequence
    - Bust Insurance discards a duplicate instead of busting (one held max)
    - First to the target score at the end of a round wins

Phase flow:
    LOBBY -> DEALING -> PLAYER_TURN <-> AWAITING_* -> ROUND_END
    ROUND_END -> DEALING (next round, after a short delay) | GAME_END

Dealing and Draw Three can stop mid-loop to wait for a player's choice.
Where they stopped is kept as an explicit cursor inside the pending
interaction, and the resolution methods re-enter the loop from there.
"""

import asyncio
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import config as engine_config
from cards import ActionType, Card, CardType, PlayedCard, score_hand, unique_number_count
from constants import (
    DEBUG_MIN_PLAYERS,
    DEFAULT_TARGET_SCORE,
    DEFAULT_TURN_TIMEOUT_SECONDS,
    DRAW_THREE_CARDS,
    MAX_PLAYERS,
    MIN_PLAYERS,
    ROUND_START_DELAY_SECONDS,
    UNIQUE_NUMBERS_FOR_BONUS,
)
from deck import Deck
from logging_config import get_logger
from models.events import EventType, GameEvent
from models.snapshot import CardView, GameSnapshot, PendingView, PlayerView, SettingsView


class GameSetupError(ValueError):
    """Raised when a game is started in a state that indicates a caller bug."""


class PlayerStatus(str, Enum):
    """Where a player stands in the current round."""

    ACTIVE = "active"
    STOPPED = "stopped"
    BUSTED = "busted"
    FROZEN = "frozen"
    DISCONNECTED = "disconnected"


class GamePhase(str, Enum):
    """
    Phases of a Flip 7 game.

    The AWAITING_* phases pause the engine until the player named in the
    pending interaction answers.
    """

    LOBBY = "lobby"
    DEALING = "dealing"
    PLAYER_TURN = "player_turn"
    AWAITING_BUST_CHOICE = "awaiting_bust_choice"
    AWAITING_FREEZE_TARGET = "awaiting_freeze_target"
    AWAITING_DRAW_THREE_TARGET = "awaiting_draw_three_target"
    ROUND_END = "round_end"
    GAME_END = "game_end"


@dataclass
class Player:
    """
    A player's state within a game.

    Attributes:
        id: Unique identifier (transport-level, may change on reconnect).
        name: Display name.
        score: Banked total across rounds.
        round_score: Score for the current round, set when the round ends
            for this player (stop, freeze, auto-stop; 0 on bust).
        cards: Cards held this round, in the order received.
        status: Round status.
        is_host: Whether this player controls the table.
        is_connected: Transport connectivity flag.
    """

    id: str
    name: str
    score: int = 0
    round_score: int = 0
    cards: list[PlayedCard] = field(default_factory=list)
    status: PlayerStatus = PlayerStatus.ACTIVE
    is_host: bool = False
    is_connected: bool = True

    def hand(self) -> list[Card]:
        """The bare cards held this round."""
        return [played.card for played in self.cards]

    def holds_number(self, value: int) -> bool:
        return any(c.type == CardType.NUMBER and c.value == value for c in self.hand())

    def has_insurance(self) -> bool:
        return any(c.is_action(ActionType.BUST_INSURANCE) for c in self.hand())

    def has_starting_card(self) -> bool:
        """A number or modifier card ends this player's initial deal."""
        return any(c.is_number() or c.is_modifier() for c in self.hand())

    def unique_numbers(self) -> int:
        return unique_number_count(self.hand())

    def take_action_card(self, action: ActionType) -> Optional[Card]:
        """Remove and return the first held action card of the given kind."""
        for i, played in enumerate(self.cards):
            if played.card.is_action(action):
                return self.cards.pop(i).card
        return None

    def calculate_round_score(self) -> int:
        """Score the current hand and store it as the round score."""
        self.round_score = score_hand(self.hand())
        return self.round_score

    def is_in_play(self) -> bool:
        """Still drawing this round: active and connected."""
        return self.status == PlayerStatus.ACTIVE and self.is_connected

    def to_view(self) -> PlayerView:
        return PlayerView(
            id=self.id,
            name=self.name,
            score=self.score,
            round_score=self.round_score,
            status=self.status.value,
            is_host=self.is_host,
            is_connected=self.is_connected,
            cards=[CardView(**c.to_dict()) for c in self.hand()],
        )


@dataclass
class GameSettings:
    """
    Table settings supplied by the lobby.

    turn_timeout_seconds is advisory metadata for clients; the engine
    does not enforce it.
    """

    target_score: int = DEFAULT_TARGET_SCORE
    max_players: int = MAX_PLAYERS
    turn_timeout_seconds: int = DEFAULT_TURN_TIMEOUT_SECONDS

    @staticmethod
    def _client_int(data: dict, key: str, default: int) -> int:
        """Read an integer from lobby data, falling back to default if it is not one."""
        try:
            return int(data.get(key, default))
        except (TypeError, ValueError):
            return default

    @classmethod
    def from_client_data(cls, data: dict) -> "GameSettings":
        """Build GameSettings from lobby message data, clamping to sane ranges."""
        target_score = cls._client_int(data, "target_score", DEFAULT_TARGET_SCORE)
        max_players = cls._client_int(data, "max_players", MAX_PLAYERS)
        turn_timeout = cls._client_int(data, "turn_timeout_seconds", DEFAULT_TURN_TIMEOUT_SECONDS)
        return cls(
            target_score=max(1, target_score),
            max_players=max(DEBUG_MIN_PLAYERS, min(MAX_PLAYERS, max_players)),
            turn_timeout_seconds=max(0, turn_timeout),
        )

    def to_view(self) -> SettingsView:
        return SettingsView(
            target_score=self.target_score,
            max_players=self.max_players,
            turn_timeout_seconds=self.turn_timeout_seconds,
        )


class CardEffect(Enum):
    """What resolving one drawn card did to the player who drew it."""

    KEPT = "kept"
    AUTO_STOP = "auto_stop"
    BUST = "bust"
    INSURED_BUST = "insured_bust"
    FREEZE = "freeze"
    DRAW_THREE = "draw_three"
    EXTRA_INSURANCE = "extra_insurance"


class PendingKind(str, Enum):
    """The kinds of human decision the engine can wait on."""

    BUST_CHOICE = "bust_choice"
    FREEZE_TARGET = "freeze_target"
    DRAW_THREE_TARGET = "draw_three_target"


@dataclass
class DealCursor:
    """
    Progress of the initial deal.

    order holds the player ids to deal to, in seat order; the player at
    position has not finished receiving a starting card.
    """

    order: list[str]
    position: int = 0


@dataclass
class DrawThreeCursor:
    """
    Progress of a Draw Three sequence.

    Freezes drawn during the sequence wait in set_aside until the
    draws are finished.
    """

    target_id: str
    remaining: int = DRAW_THREE_CARDS
    set_aside: list[Card] = field(default_factory=list)


@dataclass
class PendingInteraction:
    """
    The single decision the engine is waiting on.

    Attributes:
        kind: Which decision.
        player_id: The only player allowed to answer.
        card: The duplicate number (bust choice) or the action card
            being targeted.
        eligible_targets: Player ids that may be chosen (target choices).
        draw_three: Draw Three sequence to resume afterwards, if any.
        deal: Initial deal to resume afterwards, if any.
    """

    kind: PendingKind
    player_id: str
    card: Card
    eligible_targets: list[str] = field(default_factory=list)
    draw_three: Optional[DrawThreeCursor] = None
    deal: Optional[DealCursor] = None

    def to_view(self) -> PendingView:
        return PendingView(
            kind=self.kind.value,
            player_id=self.player_id,
            eligible_targets=list(self.eligible_targets),
            duplicate_card=(
                CardView(**self.card.to_dict())
                if self.kind == PendingKind.BUST_CHOICE else None
            ),
            during_deal=self.deal is not None,
        )


@dataclass
class DrawResult:
    """
    Outcome of a single draw() call.

    Attributes:
        card: The card drawn, or None when no card was available.
        is_bust: The card duplicated a held number.
        busted_by: The duplicate card, when is_bust.
        insurance_available: The bust is waiting on a bust-insurance choice.
        triggered: FREEZE or DRAW_THREE when the card was one of those.
        pending: The decision the engine is now waiting on, if any.
        auto_stopped: The card completed seven distinct numbers.
        extra_insurance: A second Bust Insurance that could not be kept.
        insurance_passed_to: Who received that extra insurance (None if
            it was discarded).
        no_card: Deck and discard pile were both empty.
    """

    card: Optional[Card]
    is_bust: bool = False
    busted_by: Optional[Card] = None
    insurance_available: bool = False
    triggered: Optional[ActionType] = None
    pending: Optional[PendingKind] = None
    auto_stopped: bool = False
    extra_insurance: bool = False
    insurance_passed_to: Optional[str] = None
    no_card: bool = False

    def to_dict(self) -> dict:
        return {
            "card": self.card.to_dict() if self.card else None,
            "is_bust": self.is_bust,
            "busted_by": self.busted_by.to_dict() if self.busted_by else None,
            "insurance_available": self.insurance_available,
            "triggered": self.triggered.value if self.triggered else None,
            "pending": self.pending.value if self.pending else None,
            "auto_stopped": self.auto_stopped,
            "extra_insurance": self.extra_insurance,
            "insurance_passed_to": self.insurance_passed_to,
            "no_card": self.no_card,
        }


# A scheduler runs callback after delay seconds and returns a handle with
# cancel(), or None when it cannot schedule anything.
Scheduler = Callable[[float, Callable[[], None]], Any]


def asyncio_scheduler(delay: float, callback: Callable[[], None]) -> Optional[asyncio.TimerHandle]:
    """Schedule on the running event loop; None when no loop is running."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_later(delay, callback)


IN_ROUND_PHASES = (
    GamePhase.DEALING,
    GamePhase.PLAYER_TURN,
    GamePhase.AWAITING_BUST_CHOICE,
    GamePhase.AWAITING_FREEZE_TARGET,
    GamePhase.AWAITING_DRAW_THREE_TARGET,
)


@dataclass
class Game:
    """
    Main game state and logic controller for Flip 7.

    One instance per table. Every public method is a synchronous, atomic
    transition; the caller serializes intents per table. Rejected intents
    return None/False and leave the state untouched.

    Attributes:
        players: Seated players, in seat order.
        settings: Table settings.
        deck: The draw pile (built and shuffled once, at game start).
        discard_pile: Discarded cards, recycled when the deck runs dry.
        phase: Current game phase.
        current_player_index: Index of the player whose turn it is.
        dealer_idx: Index of the dealer (rotates one seat each round).
        round_num: Current round number (1-indexed once started).
        pending: The decision the engine is waiting on, if any.
        winner_id: Sole winner, once the game has ended.
        winner_ids: Every player tied for the highest winning total.
        debug_mode: Allows starting with fewer than MIN_PLAYERS. Defaults
            to the DEBUG setting.
        round_start_delay: Seconds between round end and the next round.
        scheduler: Timer factory for the next-round delay.
        on_round_start: Called after the timer starts a new round.
        game_id: Unique identifier for logs and events.
    """

    players: list[Player] = field(default_factory=list)
    settings: GameSettings = field(default_factory=GameSettings)
    deck: Deck = field(default_factory=Deck)
    discard_pile: list[Card] = field(default_factory=list)
    phase: GamePhase = GamePhase.LOBBY
    current_player_index: int = 0
    dealer_idx: int = 0
    round_num: int = 0
    pending: Optional[PendingInteraction] = None
    winner_id: Optional[str] = None
    winner_ids: list[str] = field(default_factory=list)
    debug_mode: bool = field(default_factory=lambda: engine_config.config.DEBUG)
    round_start_delay: float = ROUND_START_DELAY_SECONDS
    scheduler: Optional[Scheduler] = field(default=None, repr=False, compare=False)
    on_round_start: Optional[Callable[["Game"], None]] = field(
        default=None, repr=False, compare=False
    )
    game_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    _event_emitter: Optional[Callable[[GameEvent], None]] = field(
        default=None, repr=False, compare=False
    )
    _sequence_num: int = field(default=0, repr=False, compare=False)
    _round_timer: Any = field(default=None, repr=False, compare=False)
    _closed: bool = field(default=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.players and not any(p.is_host for p in self.players):
            self.players[0].is_host = True
        self._log = get_logger(__name__).with_context(game_id=self.game_id)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def set_event_emitter(self, emitter: Callable[[GameEvent], None]) -> None:
        """
        Set callback for event emission.

        Args:
            emitter: Callback function that receives GameEvent objects.
        """
        self._event_emitter = emitter

    def _emit(
        self,
        event_type: EventType,
        player_id: Optional[str] = None,
        **data: Any,
    ) -> None:
        if self._event_emitter is None:
            return

        self._sequence_num += 1
        self._event_emitter(GameEvent(
            event_type=event_type,
            game_id=self.game_id,
            sequence_num=self._sequence_num,
            player_id=player_id,
            data=data,
        ))

    def _reject(self, action: str, player_id: Optional[str], reason: str, result: Any = None) -> Any:
        self._log.debug(
            f"Rejected {action}: {reason}",
            extra={"player_id": player_id, "round": self.round_num},
        )
        return result

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> bool:
        """
        Seat a player before the game starts.

        Returns:
            True if added, False if the game started, the table is full
            or the id is taken.
        """
        if self.phase != GamePhase.LOBBY:
            return False
        if len(self.players) >= self.settings.max_players:
            return False
        if self.get_player(player.id):
            return False
        player.is_host = not self.players
        self.players.append(player)
        return True

    def remove_player(self, player_id: str) -> Optional[Player]:
        """
        Remove a player from the lobby, reassigning host if needed.

        Mid-game departures go through on_disconnect() instead, so seat
        indices stay stable.
        """
        if self.phase != GamePhase.LOBBY:
            return None
        for i, player in enumerate(self.players):
            if player.id == player_id:
                removed = self.players.pop(i)
                if removed.is_host and self.players:
                    self.players[0].is_host = True
                return removed
        return None

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.players:
            return self.players[self.current_player_index]
        return None

    def is_game_over(self) -> bool:
        return self.phase == GamePhase.GAME_END

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start_game(self, dealer_idx: Optional[int] = None) -> bool:
        """
        Build and shuffle the deck, pick a dealer and start round one.

        Args:
            dealer_idx: Seat of the first dealer. Random when omitted;
                passing it lets a recorded game be replayed.

        Returns:
            True if the game started, False if it was already running.

        Raises:
            GameSetupError: Too few players, or dealer_idx out of range.
        """
        if self.phase != GamePhase.LOBBY:
            return self._reject("start_game", None, f"phase is {self.phase.value}", False)

        min_players = DEBUG_MIN_PLAYERS if self.debug_mode else MIN_PLAYERS
        if len(self.players) < min_players:
            raise GameSetupError(
                f"Need at least {min_players} players to start, have {len(self.players)}"
            )
        if dealer_idx is None:
            dealer_idx = random.randrange(len(self.players))
        elif not 0 <= dealer_idx < len(self.players):
            raise GameSetupError(f"Dealer index {dealer_idx} out of range")

        self.deck.reset()
        self.discard_pile = []
        self.dealer_idx = dealer_idx
        self.round_num = 0
        self.winner_id = None
        self.winner_ids = []

        self._log.info(
            f"Game started with {len(self.players)} players, target {self.settings.target_score}"
        )
        self._emit(
            EventType.GAME_STARTED,
            player_order=[p.id for p in self.players],
            dealer_id=self.players[dealer_idx].id,
            deck_seed=self.deck.seed,
            target_score=self.settings.target_score,
        )

        self._start_round()
        return True

    def start_next_round(self) -> bool:
        """
        Start the next round after a round has ended.

        The round-end timer calls this; it can also be called directly
        when no event loop is driving the timer.

        Returns:
            True if a round started, False if no round is waiting.
        """
        if self.phase != GamePhase.ROUND_END or self._closed:
            return False

        self._cancel_round_timer()
        self._start_round()
        if self.on_round_start is not None:
            self.on_round_start(self)
        return True

    def shutdown(self) -> None:
        """Cancel the pending next-round timer. The game stays readable."""
        self._closed = True
        self._cancel_round_timer()
        self._log.info("Game shut down")

    def _start_round(self) -> None:
        """
        Reset every player for a new round and deal starting cards.

        Hands go to the discard pile; the deck itself is not rebuilt.
        """
        self.round_num += 1
        for player in self.players:
            self.discard_pile.extend(player.hand())
            player.cards = []
            player.round_score = 0
            player.status = PlayerStatus.ACTIVE if player.is_connected else PlayerStatus.DISCONNECTED
        self.pending = None
        self.phase = GamePhase.DEALING

        # Deal runs in seat order starting from the dealer
        n = len(self.players)
        seats = [self.players[(self.dealer_idx + i) % n] for i in range(n)]
        order = [p.id for p in seats if p.status == PlayerStatus.ACTIVE]

        self._log.info(f"Round {self.round_num} started", extra={"round": self.round_num})
        self._emit(
            EventType.ROUND_STARTED,
            round_num=self.round_num,
            dealer_id=self.players[self.dealer_idx].id,
            deal_order=order,
            deck_count=self.deck.size,
        )

        self._deal_from(DealCursor(order=order))

    # -------------------------------------------------------------------------
    # Dealing
    # -------------------------------------------------------------------------

    def _deal_from(self, cursor: DealCursor) -> None:
        """Deal starting cards from the cursor onward, or pause on a choice."""
        while cursor.position < len(cursor.order):
            player = self.get_player(cursor.order[cursor.position])
            if player is not None and self._deal_starting_card(player, cursor):
                return
            cursor.position += 1

        self._finish_deal()

    def _deal_starting_card(self, player: Player, cursor: DealCursor) -> bool:
        """
        Draw for one player until they hold a number or modifier card.

        Action cards resolve as they come. Stops early if the player
        leaves contention (busted, frozen, auto-stopped).

        Returns:
            True if dealing paused for a player's decision.
        """
        while player.status == PlayerStatus.ACTIVE and not player.has_starting_card():
            card = self._draw_card()
            if card is None:
                self._log.warning("No cards left while dealing", extra={"round": self.round_num})
                return False

            self._emit(EventType.CARD_DRAWN, player.id, card=card.to_dict(), during_deal=True)
            effect = self._apply_card(player, card)

            # No number is held yet, so a duplicate cannot be drawn here
            if effect == CardEffect.FREEZE:
                player.cards.append(PlayedCard(card))
                if self._play_freeze(player, card, deal=cursor):
                    return True
            elif effect == CardEffect.DRAW_THREE:
                player.cards.append(PlayedCard(card))
                self._emit(EventType.DRAW_THREE_STARTED, player.id, drawer_id=player.id, during_deal=True)
                if self._run_draw_three(DrawThreeCursor(target_id=player.id), deal=cursor):
                    return True
            elif effect == CardEffect.EXTRA_INSURANCE:
                self._pass_insurance(player, card)

        return False

    def _finish_deal(self) -> None:
        self.pending = None
        start = self._next_in_play_index(self.dealer_idx + 1)
        if start is None:
            self._end_round()
            return
        self.current_player_index = start
        self.phase = GamePhase.PLAYER_TURN

    # -------------------------------------------------------------------------
    # Card Resolution
    # -------------------------------------------------------------------------

    def _draw_card(self) -> Optional[Card]:
        """Draw from the deck, recycling the discard pile when it runs dry."""
        if self.deck.is_empty() and self.discard_pile:
            self.deck.return_cards(self.discard_pile)
            self.discard_pile = []
            self.deck.shuffle()
            self._log.info(f"Reshuffled discard pile into deck ({self.deck.size} cards)")
            self._emit(EventType.DECK_RESHUFFLED, deck_count=self.deck.size)
        return self.deck.draw()

    def _apply_card(self, player: Player, card: Card) -> CardEffect:
        """
        Apply the parts of a card's effect that never depend on context.

        Numbers, modifiers and a first Bust Insurance are placed in the
        hand here. Freeze, Draw Three and an extra Bust Insurance are
        returned untouched so the caller can resolve them for its loop.
        """
        if card.type == CardType.NUMBER:
            if player.holds_number(card.value):
                if player.has_insurance():
                    return CardEffect.INSURED_BUST
                self._bust(player, card)
                return CardEffect.BUST
            player.cards.append(PlayedCard(card))
            if player.unique_numbers() >= UNIQUE_NUMBERS_FOR_BONUS:
                self._stop_player(player, auto=True)
                return CardEffect.AUTO_STOP
            return CardEffect.KEPT

        if card.type == CardType.ACTION:
            if card.action == ActionType.FREEZE:
                return CardEffect.FREEZE
            if card.action == ActionType.DRAW_THREE:
                return CardEffect.DRAW_THREE
            if card.action == ActionType.BUST_INSURANCE:
                if player.has_insurance():
                    return CardEffect.EXTRA_INSURANCE
                player.cards.append(PlayedCard(card))
                return CardEffect.KEPT
            raise ValueError(f"Unknown action card: {card!r}")

        if card.type == CardType.MODIFIER:
            player.cards.append(PlayedCard(card))
            return CardEffect.KEPT

        raise ValueError(f"Unknown card type: {card!r}")

    def _bust(self, player: Player, duplicate: Card) -> None:
        player.status = PlayerStatus.BUSTED
        player.round_score = 0
        self.discard_pile.extend(player.hand())
        self.discard_pile.append(duplicate)
        player.cards = []
        self._log.info(
            f"{player.name} busted on {duplicate.label()}",
            extra={"player_id": player.id, "round": self.round_num},
        )
        self._emit(EventType.PLAYER_BUSTED, player.id, duplicate_card=duplicate.to_dict())

    def _stop_player(self, player: Player, auto: bool = False) -> None:
        player.status = PlayerStatus.STOPPED
        player.calculate_round_score()
        self._emit(
            EventType.PLAYER_STOPPED,
            player.id,
            round_score=player.round_score,
            seven_unique=auto,
        )

    def _freeze(self, target: Player, frozen_by: str) -> None:
        target.status = PlayerStatus.FROZEN
        target.calculate_round_score()
        self._log.info(
            f"{target.name} frozen at {target.round_score}",
            extra={"player_id": target.id, "round": self.round_num},
        )
        self._emit(
            EventType.PLAYER_FROZEN,
            target.id,
            frozen_by=frozen_by,
            round_score=target.round_score,
        )

    def _pass_insurance(self, holder: Player, card: Card) -> Optional[str]:
        """
        Hand a second Bust Insurance to the next player clockwise who is
        still in play and has none, or discard it.

        Returns:
            The recipient's id, or None if the card was discarded.
        """
        n = len(self.players)
        start = self.players.index(holder)
        for step in range(1, n):
            other = self.players[(start + step) % n]
            if other.is_in_play() and not other.has_insurance():
                other.cards.append(PlayedCard(card))
                self._emit(EventType.INSURANCE_PASSED, holder.id, recipient_id=other.id)
                return other.id

        self.discard_pile.append(card)
        self._emit(EventType.INSURANCE_PASSED, holder.id, recipient_id=None)
        return None

    def _eligible_targets(self) -> list[Player]:
        return [p for p in self.players if p.is_in_play()]

    def _play_freeze(
        self,
        drawer: Player,
        card: Card,
        draw_three: Optional[DrawThreeCursor] = None,
        deal: Optional[DealCursor] = None,
    ) -> bool:
        """
        Resolve a Freeze the drawer already holds.

        A single eligible player is frozen at once (possibly the drawer
        themself); otherwise the drawer must choose.

        Returns:
            True if the engine is now waiting for the drawer's choice.
        """
        eligible = self._eligible_targets()
        if not eligible:
            return False
        if len(eligible) == 1:
            self._freeze(eligible[0], frozen_by=drawer.id)
            return False

        self._await_target(PendingKind.FREEZE_TARGET, drawer, card, eligible, draw_three, deal)
        return True

    def _play_draw_three(self, drawer: Player, card: Card) -> bool:
        """Resolve a Draw Three drawn during normal play."""
        eligible = self._eligible_targets()
        if not eligible:
            return False
        if len(eligible) == 1:
            target = eligible[0]
            self._emit(EventType.DRAW_THREE_STARTED, target.id, drawer_id=drawer.id)
            return self._run_draw_three(DrawThreeCursor(target_id=target.id))

        self._await_target(PendingKind.DRAW_THREE_TARGET, drawer, card, eligible)
        return True

    def _run_draw_three(self, cursor: DrawThreeCursor, deal: Optional[DealCursor] = None) -> bool:
        """
        Draw the remaining cards of a Draw Three sequence for its target.

        A nested Draw Three adds three more draws. Freezes are set aside
        until the sequence ends. A bust, or reaching seven distinct
        numbers, ends the sequence early.

        Returns:
            True if the engine paused for a decision.
        """
        target = self.get_player(cursor.target_id)
        while target is not None and cursor.remaining > 0 and target.status == PlayerStatus.ACTIVE:
            card = self._draw_card()
            if card is None:
                break
            cursor.remaining -= 1

            self._emit(EventType.CARD_DRAWN, target.id, card=card.to_dict(), draw_three=True)
            effect = self._apply_card(target, card)

            if effect == CardEffect.INSURED_BUST:
                self._await_bust_choice(target, card, draw_three=cursor, deal=deal)
                return True
            if effect == CardEffect.DRAW_THREE:
                target.cards.append(PlayedCard(card))
                cursor.remaining += DRAW_THREE_CARDS
            elif effect == CardEffect.FREEZE:
                cursor.set_aside.append(card)
            elif effect == CardEffect.EXTRA_INSURANCE:
                self._pass_insurance(target, card)

        cursor.remaining = 0
        return self._resolve_set_aside(cursor, deal)

    def _resolve_set_aside(self, cursor: DrawThreeCursor, deal: Optional[DealCursor] = None) -> bool:
        """Play Freezes held back during a Draw Three, or discard them if the target is out."""
        target = self.get_player(cursor.target_id)
        while cursor.set_aside:
            card = cursor.set_aside.pop(0)
            if target is None or target.status != PlayerStatus.ACTIVE:
                self.discard_pile.append(card)
                continue
            target.cards.append(PlayedCard(card))
            if self._play_freeze(target, card, draw_three=cursor, deal=deal):
                return True
        return False

    def _await_bust_choice(
        self,
        player: Player,
        duplicate: Card,
        draw_three: Optional[DrawThreeCursor] = None,
        deal: Optional[DealCursor] = None,
    ) -> None:
        self.pending = PendingInteraction(
            kind=PendingKind.BUST_CHOICE,
            player_id=player.id,
            card=duplicate,
            draw_three=draw_three,
            deal=deal,
        )
        self.phase = GamePhase.AWAITING_BUST_CHOICE
        self._emit(EventType.BUST_CHOICE_PROMPT, player.id, duplicate_card=duplicate.to_dict())

    def _await_target(
        self,
        kind: PendingKind,
        drawer: Player,
        card: Card,
        eligible: list[Player],
        draw_three: Optional[DrawThreeCursor] = None,
        deal: Optional[DealCursor] = None,
    ) -> None:
        self.pending = PendingInteraction(
            kind=kind,
            player_id=drawer.id,
            card=card,
            eligible_targets=[p.id for p in eligible],
            draw_three=draw_three,
            deal=deal,
        )
        if kind == PendingKind.FREEZE_TARGET:
            self.phase = GamePhase.AWAITING_FREEZE_TARGET
            event_type = EventType.FREEZE_TARGET_PROMPT
        else:
            self.phase = GamePhase.AWAITING_DRAW_THREE_TARGET
            event_type = EventType.DRAW_THREE_TARGET_PROMPT
        self._emit(event_type, drawer.id, eligible_targets=self.pending.eligible_targets)

    def _resume_phase(self, deal: Optional[DealCursor]) -> None:
        self.phase = GamePhase.DEALING if deal is not None else GamePhase.PLAYER_TURN

    def _continue(self, deal: Optional[DealCursor]) -> None:
        """Carry on after an interaction: finish the deal, or pass the turn on."""
        self._resume_phase(deal)
        if deal is not None:
            self._deal_from(deal)
        else:
            self._advance_turn()

    # -------------------------------------------------------------------------
    # Player Actions
    # -------------------------------------------------------------------------

    def draw(self, player_id: str) -> Optional[DrawResult]:
        """
        Draw one card for the current player and resolve it.

        Unless the card leaves the engine waiting on a decision, the turn
        passes to the next player in play.

        Args:
            player_id: The player drawing.

        Returns:
            DrawResult describing what happened, or None if the intent
            was rejected (wrong phase, not their turn, not active).
        """
        if self.phase != GamePhase.PLAYER_TURN:
            return self._reject("draw", player_id, f"phase is {self.phase.value}")
        player = self.get_player(player_id)
        if player is None or player.status != PlayerStatus.ACTIVE:
            return self._reject("draw", player_id, "player not active")
        current = self.current_player()
        if current is None or current.id != player_id:
            return self._reject("draw", player_id, "not their turn")

        card = self._draw_card()
        if card is None:
            self._log.warning("Deck and discard pile are empty", extra={"player_id": player_id})
            return DrawResult(card=None, no_card=True)

        result = DrawResult(card=card)
        self._emit(EventType.CARD_DRAWN, player.id, card=card.to_dict())
        self._log.debug(
            f"{player.name} drew {card.label()}",
            extra={"player_id": player.id, "round": self.round_num},
        )

        effect = self._apply_card(player, card)

        if effect == CardEffect.INSURED_BUST:
            result.is_bust = True
            result.busted_by = card
            result.insurance_available = True
            self._await_bust_choice(player, card)
            result.pending = PendingKind.BUST_CHOICE
            return result

        if effect == CardEffect.BUST:
            result.is_bust = True
            result.busted_by = card
        elif effect == CardEffect.AUTO_STOP:
            result.auto_stopped = True
        elif effect == CardEffect.EXTRA_INSURANCE:
            result.extra_insurance = True
            result.insurance_passed_to = self._pass_insurance(player, card)
        elif effect == CardEffect.FREEZE:
            result.triggered = ActionType.FREEZE
            player.cards.append(PlayedCard(card))
            if self._play_freeze(player, card):
                result.pending = self.pending.kind
                return result
        elif effect == CardEffect.DRAW_THREE:
            result.triggered = ActionType.DRAW_THREE
            player.cards.append(PlayedCard(card))
            if self._play_draw_three(player, card):
                result.pending = self.pending.kind
                return result

        self._advance_turn()
        return result

    def stop(self, player_id: str) -> bool:
        """
        Stop drawing and lock in the current hand's score.

        Returns:
            True if the player stopped, False if the intent was rejected.
        """
        if self.phase != GamePhase.PLAYER_TURN:
            return self._reject("stop", player_id, f"phase is {self.phase.value}", False)
        player = self.get_player(player_id)
        if player is None or player.status != PlayerStatus.ACTIVE:
            return self._reject("stop", player_id, "player not active", False)
        current = self.current_player()
        if current is None or current.id != player_id:
            return self._reject("stop", player_id, "not their turn", False)

        self._stop_player(player)
        self._log.info(
            f"{player.name} stopped with {player.round_score}",
            extra={"player_id": player.id, "round": self.round_num},
        )
        self._advance_turn()
        return True

    def resolve_bust_choice(self, player_id: str, accept: bool) -> bool:
        """
        Answer a pending bust-insurance decision.

        Accepting discards the insurance and the duplicate and keeps the
        player in the round. Declining busts them.

        Args:
            player_id: Must be the player who drew the duplicate.
            accept: Whether to spend the insurance.

        Returns:
            True if the choice was applied.
        """
        pending = self.pending
        if (
            self.phase != GamePhase.AWAITING_BUST_CHOICE
            or pending is None
            or pending.kind != PendingKind.BUST_CHOICE
        ):
            return self._reject("resolve_bust_choice", player_id, "no bust choice pending", False)
        if pending.player_id != player_id:
            return self._reject("resolve_bust_choice", player_id, "not their choice", False)
        player = self.get_player(player_id)
        if player is None:
            return self._reject("resolve_bust_choice", player_id, "unknown player", False)

        self.pending = None
        self._resume_phase(pending.deal)

        if accept:
            insurance = player.take_action_card(ActionType.BUST_INSURANCE)
            if insurance is not None:
                self.discard_pile.append(insurance)
            self.discard_pile.append(pending.card)
            player.status = PlayerStatus.ACTIVE if player.is_connected else PlayerStatus.DISCONNECTED
            self._emit(EventType.INSURANCE_USED, player.id, duplicate_card=pending.card.to_dict())

            if pending.draw_three is not None and self._run_draw_three(pending.draw_three, pending.deal):
                return True
        else:
            self._bust(player, pending.card)
            if pending.draw_three is not None:
                pending.draw_three.remaining = 0
                self.discard_pile.extend(pending.draw_three.set_aside)
                pending.draw_three.set_aside = []

        self._continue(pending.deal)
        return True

    def choose_freeze_target(self, player_id: str, target_id: str) -> bool:
        """
        Answer a pending Freeze: the drawer picks who is frozen.

        Args:
            player_id: Must be the player who drew the Freeze.
            target_id: One of the recorded eligible players, still active.

        Returns:
            True if the target was frozen.
        """
        pending = self.pending
        if (
            self.phase != GamePhase.AWAITING_FREEZE_TARGET
            or pending is None
            or pending.kind != PendingKind.FREEZE_TARGET
        ):
            return self._reject("choose_freeze_target", player_id, "no freeze pending", False)
        if pending.player_id != player_id:
            return self._reject("choose_freeze_target", player_id, "not their choice", False)
        target = self.get_player(target_id)
        if (
            target_id not in pending.eligible_targets
            or target is None
            or target.status != PlayerStatus.ACTIVE
        ):
            return self._reject("choose_freeze_target", player_id, f"ineligible target {target_id}", False)

        self.pending = None
        self._resume_phase(pending.deal)
        self._freeze(target, frozen_by=player_id)

        if pending.draw_three is not None and self._resolve_set_aside(pending.draw_three, pending.deal):
            return True

        self._continue(pending.deal)
        return True

    def choose_draw_three_target(self, player_id: str, target_id: str) -> bool:
        """
        Answer a pending Draw Three: the drawer picks who draws three.

        Args:
            player_id: Must be the player who drew the Draw Three.
            target_id: One of the recorded eligible players, still active.

        Returns:
            True if the sequence ran (or paused inside it).
        """
        pending = self.pending
        if (
            self.phase != GamePhase.AWAITING_DRAW_THREE_TARGET
            or pending is None
            or pending.kind != PendingKind.DRAW_THREE_TARGET
        ):
            return self._reject("choose_draw_three_target", player_id, "no draw three pending", False)
        if pending.player_id != player_id:
            return self._reject("choose_draw_three_target", player_id, "not their choice", False)
        target = self.get_player(target_id)
        if (
            target_id not in pending.eligible_targets
            or target is None
            or target.status != PlayerStatus.ACTIVE
        ):
            return self._reject(
                "choose_draw_three_target", player_id, f"ineligible target {target_id}", False
            )

        self.pending = None
        self._resume_phase(pending.deal)
        self._emit(EventType.DRAW_THREE_STARTED, target.id, drawer_id=player_id)

        if self._run_draw_three(DrawThreeCursor(target_id=target.id), pending.deal):
            return True

        self._continue(pending.deal)
        return True

    # -------------------------------------------------------------------------
    # Connectivity
    # -------------------------------------------------------------------------

    def on_disconnect(self, player_id: str) -> bool:
        """
        Mark a player disconnected. An active player sits out the rest of
        the round; if it was their turn, the turn moves on.
        """
        player = self.get_player(player_id)
        if player is None:
            return False

        player.is_connected = False
        if player.status == PlayerStatus.ACTIVE:
            player.status = PlayerStatus.DISCONNECTED
        self._emit(EventType.PLAYER_DISCONNECTED, player.id)

        current = self.current_player()
        if self.phase == GamePhase.PLAYER_TURN and current is not None and current.id == player_id:
            self._advance_turn()
        return True

    def on_reconnect(self, player_id: str) -> bool:
        """Restore a disconnected player's connectivity and active status."""
        player = self.get_player(player_id)
        if player is None:
            return False

        player.is_connected = True
        if player.status == PlayerStatus.DISCONNECTED:
            player.status = PlayerStatus.ACTIVE
        self._emit(EventType.PLAYER_RECONNECTED, player.id)
        return True

    def rename_player(self, old_id: str, new_id: str) -> bool:
        """
        Re-identify a player (e.g. a new transport id after reconnecting).

        Any pending interaction, cursor or winner record that refers to
        the old id is patched too.
        """
        player = self.get_player(old_id)
        if player is None or (new_id != old_id and self.get_player(new_id) is not None):
            return False

        def swap(pid: str) -> str:
            return new_id if pid == old_id else pid

        player.id = new_id
        pending = self.pending
        if pending is not None:
            pending.player_id = swap(pending.player_id)
            pending.eligible_targets = [swap(pid) for pid in pending.eligible_targets]
            if pending.draw_three is not None:
                pending.draw_three.target_id = swap(pending.draw_three.target_id)
            if pending.deal is not None:
                pending.deal.order = [swap(pid) for pid in pending.deal.order]
        if self.winner_id is not None:
            self.winner_id = swap(self.winner_id)
        self.winner_ids = [swap(pid) for pid in self.winner_ids]

        self._emit(EventType.PLAYER_RENAMED, new_id, old_id=old_id)
        return True

    # -------------------------------------------------------------------------
    # Turn & Round Flow (Internal)
    # -------------------------------------------------------------------------

    def _next_in_play_index(self, start: int) -> Optional[int]:
        """First seat at or after start (cyclically) that is still in play."""
        n = len(self.players)
        for step in range(n):
            idx = (start + step) % n
            if self.players[idx].is_in_play():
                return idx
        return None

    def _advance_turn(self) -> None:
        """
        Pass the turn to the next player in play, cyclically. The current
        player keeps the turn when nobody else is left. Ends the round
        when nobody is in play at all.
        """
        next_index = self._next_in_play_index(self.current_player_index + 1)
        if next_index is None:
            self._end_round()
            return
        self.current_player_index = next_index
        self.phase = GamePhase.PLAYER_TURN

    def _end_round(self) -> None:
        """
        Bank round scores and decide whether the game is over.

        Stopped and frozen players add their round score to their total.
        When someone reaches the target, the highest total wins (ties
        share the win); otherwise the dealer moves one seat and the next
        round is scheduled.
        """
        self.phase = GamePhase.ROUND_END
        self.pending = None

        for player in self.players:
            if player.status in (PlayerStatus.STOPPED, PlayerStatus.FROZEN):
                player.score += player.round_score

        self._log.info(f"Round {self.round_num} ended", extra={"round": self.round_num})
        self._emit(
            EventType.ROUND_ENDED,
            round_num=self.round_num,
            scores={
                p.id: {"round_score": p.round_score, "total_score": p.score, "status": p.status.value}
                for p in self.players
            },
        )

        reached = [p for p in self.players if p.score >= self.settings.target_score]
        if reached:
            top = max(p.score for p in reached)
            self.winner_ids = [p.id for p in reached if p.score == top]
            self.winner_id = self.winner_ids[0] if len(self.winner_ids) == 1 else None
            self.phase = GamePhase.GAME_END
            self._log.info(f"Game over, winners: {', '.join(self.winner_ids)}")
            self._emit(
                EventType.GAME_ENDED,
                winner_id=self.winner_id,
                winner_ids=self.winner_ids,
                final_scores={p.id: p.score for p in self.players},
            )
            return

        self.dealer_idx = (self.dealer_idx + 1) % len(self.players)
        self._schedule_next_round()

    def _schedule_next_round(self) -> None:
        if self._closed:
            return
        scheduler = self.scheduler or asyncio_scheduler
        self._round_timer = scheduler(self.round_start_delay, self._on_round_timer)
        if self._round_timer is None:
            self._log.info("No event loop running; next round waits for start_next_round()")

    def _on_round_timer(self) -> None:
        self._round_timer = None
        self.start_next_round()

    def _cancel_round_timer(self) -> None:
        if self._round_timer is not None:
            self._round_timer.cancel()
            self._round_timer = None

    # -------------------------------------------------------------------------
    # State Queries
    # -------------------------------------------------------------------------

    @property
    def draw_three_remaining(self) -> int:
        if self.pending is not None and self.pending.draw_three is not None:
            return self.pending.draw_three.remaining
        return 0

    def get_snapshot(self) -> GameSnapshot:
        """
        Get the full game state for broadcasting.

        The snapshot is a copy; changing it never affects the game.
        """
        current = self.current_player()
        return GameSnapshot(
            game_id=self.game_id,
            phase=self.phase.value,
            round=self.round_num,
            players=[p.to_view() for p in self.players],
            current_player_index=self.current_player_index,
            current_player_id=(
                current.id if current and self.phase == GamePhase.PLAYER_TURN else None
            ),
            dealer_index=self.dealer_idx,
            deck_count=self.deck.size,
            discard_pile=[CardView(**c.to_dict()) for c in self.discard_pile],
            settings=self.settings.to_view(),
            pending=self.pending.to_view() if self.pending else None,
            draw_three_remaining=self.draw_three_remaining,
            winner_id=self.winner_id,
            winner_ids=list(self.winner_ids),
        )
