from yearline.models import ActiveRound, Bet
from yearline.services.games.rounds import Outcome, RoundResult, judge_round


def test_correct_placement_keeps_the_card_and_ignores_bets():
    outcome = judge_round([2000, 2010], 2015, 2, [Bet(7, 2, 5.0)])
    assert outcome.placement_correct
    assert outcome.card_went_to == Outcome.ACTIVE_PLAYER
    assert outcome.winning_bettor_id is None


def test_earliest_valid_bet_wins_a_misplaced_card():
    bets = [Bet(11, 1, 10.0), Bet(12, 2, 20.0)]
    outcome = judge_round([2000, 2010], 2015, 0, bets)
    assert not outcome.placement_correct
    assert outcome.card_went_to == Outcome.BETTOR
    assert outcome.winning_bettor_id == 12


def test_bets_are_judged_by_time_not_recording_order():
    timeline = [1990, 2005, 2005, 2020]
    bets = [Bet(21, 3, 30.0), Bet(22, 1, 10.0)]
    outcome = judge_round(timeline, 2005, 0, bets)
    assert outcome.winning_bettor_id == 22


def test_simultaneous_bets_keep_recording_order():
    timeline = [1990, 2005, 2005, 2020]
    bets = [Bet(31, 2, 10.0), Bet(32, 1, 10.0)]
    assert judge_round(timeline, 2005, 0, bets).winning_bettor_id == 31


def test_no_valid_bet_discards():
    outcome = judge_round([2000, 2010], 2015, 0, [Bet(11, 1, 1.0)])
    assert outcome.card_went_to == Outcome.DISCARD
    assert outcome.winning_bettor_id is None


def test_judging_is_deterministic():
    bets = (Bet(1, 0, 3.0), Bet(2, 2, 4.0))
    first = judge_round([1980, 1999], 2001, 1, bets)
    assert all(judge_round([1980, 1999], 2001, 1, bets) == first for _ in range(5))


def test_active_round_survives_storage():
    rnd = ActiveRound(card_id=4, active_player_id=2)
    rnd = rnd.with_placement(1).with_bet(Bet(3, 0, 12.5)).with_claimer(3)
    restored = ActiveRound.from_json(rnd.to_json())
    assert restored == rnd
    assert restored.bet_by(3) == Bet(3, 0, 12.5)
    assert restored.slot_taken(0)
    assert not restored.slot_taken(1)


def test_round_result_flattens_the_outcome():
    outcome = judge_round([2000, 2010], 2015, 0, [Bet(12, 2, 20.0)])
    result = RoundResult(outcome, winner_id=12)
    assert result.outcome is outcome
    assert result.to_dict() == {
        'placement_correct': False,
        'card_went_to': 'bettor',
        'winning_bettor_id': 12,
        'winner_id': 12,
    }
