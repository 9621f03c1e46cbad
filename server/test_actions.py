"""
Tests for action card resolution: Freeze, Draw Three and Bust Insurance,
during normal play and during the initial deal.

Seating as in test_game.py: p1..p3, p3 deals and receives first, p1 takes
the first turn.

Run with: pytest test_actions.py -v
"""

from cards import ActionType, Card
from game import GamePhase, PendingKind, Player, PlayerStatus


FREEZE = Card.of_action(ActionType.FREEZE)
DRAW_THREE = Card.of_action(ActionType.DRAW_THREE)
INSURANCE = Card.of_action(ActionType.BUST_INSURANCE)


def numbers(*values: int) -> list[Card]:
    return [Card.number(v) for v in values]


def hand_values(player: Player) -> list:
    return [c.value if c.is_number() else c.label() for c in player.hand()]


# =============================================================================
# Freeze
# =============================================================================

class TestFreeze:

    def test_freeze_prompts_drawer_when_several_eligible(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE])
        result = game.draw("p1")

        assert result.triggered == ActionType.FREEZE
        assert result.pending == PendingKind.FREEZE_TARGET
        assert game.phase == GamePhase.AWAITING_FREEZE_TARGET
        assert game.pending.player_id == "p1"
        assert game.pending.eligible_targets == ["p1", "p2", "p3"]
        assert hand_values(game.get_player("p1")) == [1, "freeze"]

    def test_chosen_target_is_frozen_and_banks(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE])
        game.draw("p1")
        assert game.choose_freeze_target("p1", "p2")

        p2 = game.get_player("p2")
        assert p2.status == PlayerStatus.FROZEN
        assert p2.round_score == 2
        assert game.pending is None
        assert game.phase == GamePhase.PLAYER_TURN
        assert game.current_player().id == "p3"

    def test_drawer_may_freeze_themself(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE])
        game.draw("p1")
        assert game.choose_freeze_target("p1", "p1")
        assert game.get_player("p1").status == PlayerStatus.FROZEN
        assert game.get_player("p1").round_score == 1
        assert game.current_player().id == "p2"

    def test_only_drawer_may_choose(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE])
        game.draw("p1")
        assert not game.choose_freeze_target("p2", "p3")
        assert game.phase == GamePhase.AWAITING_FREEZE_TARGET

    def test_target_must_be_eligible(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE])
        game.draw("p1")
        assert not game.choose_freeze_target("p1", "ghost")
        assert game.pending is not None

    def test_single_eligible_player_is_frozen_at_once(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE])
        game.stop("p1")
        game.stop("p2")
        result = game.draw("p3")

        assert result.pending is None
        assert game.get_player("p3").status == PlayerStatus.FROZEN
        assert game.phase == GamePhase.ROUND_END
        assert game.get_player("p3").score == 3

    def test_no_other_intents_while_waiting(self, make_game):
        game = make_game(numbers(3, 1, 2) + [FREEZE, 9])
        game.draw("p1")
        assert game.draw("p1") is None
        assert not game.stop("p1")
        assert not game.resolve_bust_choice("p1", accept=True)


# =============================================================================
# Draw Three
# =============================================================================

class TestDrawThree:

    def test_single_eligible_draws_three_themself(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE] + numbers(4, 5, 6))
        game.stop("p1")
        game.stop("p2")
        result = game.draw("p3")

        assert result.triggered == ActionType.DRAW_THREE
        assert result.pending is None
        assert hand_values(game.get_player("p3")) == [3, "draw_three", 4, 5, 6]
        assert game.current_player().id == "p3"
        assert game.draw_three_remaining == 0

    def test_drawer_chooses_target(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE] + numbers(4, 5, 6))
        result = game.draw("p1")

        assert result.pending == PendingKind.DRAW_THREE_TARGET
        assert game.phase == GamePhase.AWAITING_DRAW_THREE_TARGET
        assert game.choose_draw_three_target("p1", "p2")

        assert hand_values(game.get_player("p2")) == [2, 4, 5, 6]
        assert game.phase == GamePhase.PLAYER_TURN
        assert game.current_player().id == "p2"

    def test_target_must_still_be_active(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE] + numbers(4, 5, 6))
        game.draw("p1")
        game.on_disconnect("p2")
        assert not game.choose_draw_three_target("p1", "p2")
        assert game.choose_draw_three_target("p1", "p3")

    def test_bust_ends_sequence_early(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE] + numbers(2, 9))
        game.draw("p1")
        game.choose_draw_three_target("p1", "p2")

        assert game.get_player("p2").status == PlayerStatus.BUSTED
        assert game.deck.size == 1
        assert game.current_player().id == "p3"

    def test_nested_draw_three_adds_three_draws(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE, DRAW_THREE] + numbers(4, 5, 6, 7, 8))
        game.draw("p1")
        game.choose_draw_three_target("p1", "p2")

        assert hand_values(game.get_player("p2")) == [2, "draw_three", 4, 5, 6, 7, 8]
        assert game.deck.is_empty()

    def test_seven_distinct_numbers_ends_sequence(self, make_game):
        game = make_game(numbers(3, 0, 2, 1, 4, 5, 6) + [DRAW_THREE] + numbers(7, 8, 9))
        game.draw("p1")
        game.stop("p2")
        game.stop("p3")
        for _ in range(3):
            game.draw("p1")

        # p1 is the only one left, so the Draw Three lands on them
        game.draw("p1")

        p1 = game.get_player("p1")
        assert p1.unique_numbers() == 7
        assert p1.status == PlayerStatus.STOPPED
        assert p1.round_score == 31 + 15
        assert game.deck.size == 1
        assert game.phase == GamePhase.ROUND_END

    def test_freeze_drawn_during_sequence_waits_until_the_end(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE, FREEZE] + numbers(4, 5))
        game.draw("p1")
        game.choose_draw_three_target("p1", "p2")

        assert game.phase == GamePhase.AWAITING_FREEZE_TARGET
        assert game.pending.player_id == "p2"
        assert hand_values(game.get_player("p2")) == [2, 4, 5, "freeze"]

        assert game.choose_freeze_target("p2", "p3")
        assert game.get_player("p3").status == PlayerStatus.FROZEN
        assert game.current_player().id == "p2"

    def test_set_aside_freeze_discarded_when_target_busts(self, make_game):
        game = make_game(numbers(3, 1, 2) + [DRAW_THREE, FREEZE] + numbers(2))
        game.draw("p1")
        game.choose_draw_three_target("p1", "p2")

        assert game.get_player("p2").status == PlayerStatus.BUSTED
        assert FREEZE in game.discard_pile
        assert game.pending is None
        assert game.current_player().id == "p3"


# =============================================================================
# Bust Insurance
# =============================================================================

class TestBustInsurance:

    def test_duplicate_with_insurance_prompts(self, make_game):
        game = make_game(numbers(3) + [INSURANCE] + numbers(4, 2, 4))
        result = game.draw("p1")

        assert result.is_bust
        assert result.insurance_available
        assert result.pending == PendingKind.BUST_CHOICE
        assert game.phase == GamePhase.AWAITING_BUST_CHOICE
        assert game.get_player("p1").status == PlayerStatus.ACTIVE

    def test_accept_discards_insurance_and_duplicate(self, make_game):
        game = make_game(numbers(3) + [INSURANCE] + numbers(4, 2, 4))
        game.draw("p1")
        assert game.resolve_bust_choice("p1", accept=True)

        p1 = game.get_player("p1")
        assert hand_values(p1) == [4]
        assert not p1.has_insurance()
        assert INSURANCE in game.discard_pile
        assert Card.number(4) in game.discard_pile
        assert game.current_player().id == "p2"

    def test_decline_busts(self, make_game):
        game = make_game(numbers(3) + [INSURANCE] + numbers(4, 2, 4))
        game.draw("p1")
        assert game.resolve_bust_choice("p1", accept=False)

        p1 = game.get_player("p1")
        assert p1.status == PlayerStatus.BUSTED
        assert p1.hand() == []
        assert game.current_player().id == "p2"

    def test_only_prompted_player_may_answer(self, make_game):
        game = make_game(numbers(3) + [INSURANCE] + numbers(4, 2, 4))
        game.draw("p1")
        assert not game.resolve_bust_choice("p2", accept=True)
        assert game.phase == GamePhase.AWAITING_BUST_CHOICE

    def test_accept_resumes_draw_three(self, make_game):
        game = make_game(numbers(3, 1) + [INSURANCE] + numbers(2) + [DRAW_THREE] + numbers(2, 6, 7))
        game.draw("p1")
        game.choose_draw_three_target("p1", "p2")

        assert game.phase == GamePhase.AWAITING_BUST_CHOICE
        assert game.draw_three_remaining == 2
        assert game.resolve_bust_choice("p2", accept=True)

        assert hand_values(game.get_player("p2")) == [2, 6, 7]
        assert game.draw_three_remaining == 0
        assert game.current_player().id == "p2"

    def test_decline_clears_draw_three(self, make_game):
        game = make_game(numbers(3, 1) + [INSURANCE] + numbers(2) + [DRAW_THREE] + numbers(2, 6, 7))
        game.draw("p1")
        game.choose_draw_three_target("p1", "p2")
        game.resolve_bust_choice("p2", accept=False)

        assert game.get_player("p2").status == PlayerStatus.BUSTED
        assert game.deck.size == 2
        assert game.current_player().id == "p3"

    def test_extra_insurance_passes_clockwise(self, make_game):
        game = make_game([INSURANCE] + numbers(3, 1, 2) + [INSURANCE])
        result = game.draw("p1")

        assert result.extra_insurance
        assert result.insurance_passed_to == "p2"
        assert game.get_player("p2").has_insurance()
        assert hand_values(game.get_player("p1")) == ["bust_insurance", 1]

    def test_extra_insurance_skips_holders(self, make_game):
        game = make_game(numbers(3) + [INSURANCE] + numbers(1) + [INSURANCE] + numbers(2) + [INSURANCE])
        result = game.draw("p1")
        assert result.insurance_passed_to == "p3"

    def test_extra_insurance_discarded_when_nobody_can_take_it(self, make_game):
        game = make_game([INSURANCE] + numbers(3, 1, 2) + [INSURANCE])
        game.stop("p1")
        game.stop("p2")
        result = game.draw("p3")

        assert result.extra_insurance
        assert result.insurance_passed_to is None
        assert INSURANCE in game.discard_pile
        assert hand_values(game.get_player("p3")) == ["bust_insurance", 3]


# =============================================================================
# Actions During the Deal
# =============================================================================

class TestActionsDuringDeal:
    """The dealer (p3) receives first, so deal-time actions land on p3."""

    def test_freeze_during_deal_pauses_and_resumes(self, make_game):
        game = make_game([FREEZE] + numbers(1, 2))

        assert game.phase == GamePhase.AWAITING_FREEZE_TARGET
        assert game.pending.player_id == "p3"
        assert game.get_snapshot().pending.during_deal
        assert game.draw("p1") is None

        assert game.choose_freeze_target("p3", "p2")
        assert game.get_player("p2").status == PlayerStatus.FROZEN
        assert hand_values(game.get_player("p3")) == ["freeze", 1]
        assert hand_values(game.get_player("p1")) == [2]
        assert game.get_player("p2").hand() == []
        assert game.phase == GamePhase.PLAYER_TURN
        assert game.current_player().id == "p1"

    def test_draw_three_during_deal_runs_on_the_receiver(self, make_game):
        game = make_game([DRAW_THREE] + numbers(4, 5, 6, 2, 3))
        assert hand_values(game.get_player("p3")) == ["draw_three", 4, 5, 6]
        assert hand_values(game.get_player("p1")) == [2]
        assert hand_values(game.get_player("p2")) == [3]
        assert game.current_player().id == "p1"

    def test_insured_duplicate_during_deal(self, make_game):
        game = make_game([INSURANCE, DRAW_THREE] + numbers(5, 5, 7, 2, 3))

        assert game.phase == GamePhase.AWAITING_BUST_CHOICE
        assert game.get_snapshot().pending.during_deal
        assert game.resolve_bust_choice("p3", accept=True)

        assert hand_values(game.get_player("p3")) == ["draw_three", 5, 7]
        assert hand_values(game.get_player("p1")) == [2]
        assert hand_values(game.get_player("p2")) == [3]
        assert game.phase == GamePhase.PLAYER_TURN
        assert game.current_player().id == "p1"
