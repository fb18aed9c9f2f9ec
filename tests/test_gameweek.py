"""
Tests for the GameWeek scoring pass, leaderboards and the GameStore lifecycle.

Squad baseline (every starter plays 90 minutes, nothing else):
gk1 1.5, d1 1.3, d2 1.3, m1 1.2, m2 1.2, m3 1.2, a1 1.1 -> 8.8 raw.
m2 is a Star, so no exclusive team bonus applies.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import (
    score_game_week,
    finalize_roster,
    build_leaderboard,
    process_game_week,
    GameWeek,
    GameWeekStatus,
    GameWeekStats,
    GameWeekResult,
    TeamGameWeekResult,
    DoubleImpact,
    GoldenGame,
    RecoveryBoost,
    BoosterState,
    NoBooster,
    ScoringInputError,
    RosterError,
    BoosterLockedError,
)

import pytest


def _stats(player_ids, **overrides):
    """90 minutes for everyone, with per-player overrides as dicts."""
    stats = {pid: GameWeekStats(minutes_played=90) for pid in player_ids}
    for pid, fields in overrides.items():
        stats[pid] = GameWeekStats(**{"minutes_played": 90, **fields})
    return stats


# =============================================================================
# score_game_week
# =============================================================================

class TestScoreGameWeek:
    def test_baseline(self, make_roster, starters, bench, squad, as_of):
        roster = make_roster(starters, bench, captain_id="a1")
        result = score_game_week(roster, _stats(starters), squad, as_of)

        # a1 captain: 1.1 * 1.1 = 1.21
        assert result.team.total_points == pytest.approx(8.8 + 0.11)
        assert result.team.bonus_label is None
        assert result.team.booster_kind == "none"
        assert set(result.per_player) == set(starters + bench)

    def test_fatigue_after_by_category(self, make_roster, starters, bench, squad, as_of):
        result = score_game_week(make_roster(starters, bench), _stats(starters), squad, as_of)

        assert result.per_player["m2"].fatigue_after == pytest.approx(0.8)   # Star
        assert result.per_player["m1"].fatigue_after == pytest.approx(0.9)   # Key
        assert result.per_player["m3"].fatigue_after == pytest.approx(1.0)   # Wild
        assert result.fatigue_updates["m2"] == pytest.approx(0.8)

    def test_substitutes_rest(self, make_roster, starters, bench, squad, as_of):
        roster = make_roster(starters, bench, fatigue_state={"m4": 0.5})
        # Bench stats are ignored even if the player appeared
        stats = _stats(starters + ["m4"], m4={"goals": 3})
        result = score_game_week(roster, stats, squad, as_of)

        sub = result.per_player["m4"]
        assert sub.points == 0
        assert sub.breakdown == {}
        assert sub.is_starter is False
        assert sub.played is False
        assert sub.fatigue_after == pytest.approx(0.6)

    def test_starter_who_did_not_play_recovers(self, make_roster, starters, squad, as_of):
        roster = make_roster(starters, fatigue_state={"m2": 0.6})
        result = score_game_week(roster, _stats(starters, m2={"minutes_played": 0}), squad, as_of)

        assert result.per_player["m2"].points == 0
        assert result.per_player["m2"].played is False
        assert result.per_player["m2"].fatigue_after == pytest.approx(0.7)

    def test_roster_fatigue_overrides_player_fatigue(self, make_roster, starters, squad, as_of):
        squad["m1"].fatigue = 0.5
        roster = make_roster(starters, fatigue_state={"m1": 0.8})
        result = score_game_week(roster, _stats(starters), squad, as_of)

        assert result.per_player["m1"].fatigue_before == pytest.approx(0.8)
        assert result.per_player["m1"].points == pytest.approx(1.2 * 0.8)

    def test_player_fatigue_used_without_roster_state(self, make_roster, starters, squad, as_of):
        squad["m1"].fatigue = 0.5
        result = score_game_week(make_roster(starters), _stats(starters), squad, as_of)
        assert result.per_player["m1"].fatigue_before == pytest.approx(0.5)

    def test_missing_starter_stats(self, make_roster, starters, squad, as_of):
        stats = _stats(starters)
        del stats["d2"]
        with pytest.raises(ScoringInputError, match="d2"):
            score_game_week(make_roster(starters), stats, squad, as_of)

    def test_missing_substitute_stats_are_fine(self, make_roster, starters, bench, squad, as_of):
        result = score_game_week(make_roster(starters, bench), _stats(starters), squad, as_of)
        assert result.per_player["a2"].points == 0

    def test_empty_lineup(self, make_roster, squad, as_of):
        result = score_game_week(make_roster([], ["m4"]), {}, squad, as_of)
        assert result.team.total_points == 0
        assert result.team.bonus_label is None

    def test_crazy_lineup(self, make_roster, squad, as_of):
        lineup = ["d1", "d2", "m3"]
        result = score_game_week(make_roster(lineup, captain_id="d1"), _stats(lineup), squad, as_of)
        # d1 captain: 1.3 * 1.1 = 1.43, + 1.3 + 1.2 = 3.93, all Wild -> x1.4
        assert result.team.bonus_label == "Crazy"
        assert result.team.raw_points == pytest.approx(3.93)
        assert result.team.total_points == pytest.approx(3.93 * 1.4)

    def test_deterministic_and_pure(self, make_roster, starters, bench, squad, as_of):
        roster = make_roster(starters, bench, booster=RecoveryBoost("m1"), fatigue_state={"m1": 0.4})
        stats = _stats(starters, m1={"goals": 1})

        first = score_game_week(roster, stats, squad, as_of)
        second = score_game_week(roster, stats, squad, as_of)

        assert first.to_dict() == second.to_dict()
        assert roster.fatigue_state == {"m1": 0.4}
        assert roster.booster_state == BoosterState.ARMED
        assert roster.locked is False

    def test_to_dict_shape(self, make_roster, starters, squad, as_of):
        payload = score_game_week(make_roster(starters), _stats(starters), squad, as_of).to_dict()
        assert set(payload) == {"per_player", "team"}
        assert set(payload["per_player"]["m1"]) >= {"points", "breakdown", "fatigue_before", "fatigue_after"}
        assert set(payload["team"]) >= {"total_points", "bonus_label"}


class TestBoostersInScoring:
    def test_double_impact_follows_captain(self, make_roster, starters, squad, as_of):
        roster = make_roster(starters, captain_id="m1", booster=DoubleImpact())
        result = score_game_week(roster, _stats(starters), squad, as_of)

        assert result.per_player["m1"].points == pytest.approx(1.2 * 2.2)
        assert result.per_player["m2"].points == pytest.approx(1.2)
        assert result.team.total_points == pytest.approx(8.8 - 1.2 + 1.2 * 2.2)
        assert result.team.booster_kind == "double_impact"

    def test_golden_game(self, make_roster, starters, squad, as_of):
        roster = make_roster(starters, captain_id="m1", booster=GoldenGame())
        result = score_game_week(roster, _stats(starters), squad, as_of)

        assert result.team.total_points == pytest.approx((8.8 + 0.12) * 1.2)
        assert result.team.bonus_label == "Golden Game"

    def test_recovery_boost_applied(self, make_roster, starters, squad, as_of):
        roster = make_roster(
            starters, captain_id="a1", booster=RecoveryBoost("m1"), fatigue_state={"m1": 0.5},
        )
        result = score_game_week(roster, _stats(starters), squad, as_of)

        line = result.per_player["m1"]
        assert line.fatigue_before == pytest.approx(1.0)
        assert line.points == pytest.approx(1.2)
        assert line.fatigue_after == pytest.approx(0.9)
        assert result.team.booster_status == "Recovery Boost applied to Player m1."
        assert result.team.booster_refunded is False

    def test_recovery_boost_refunded_when_target_sits_out(self, make_roster, starters, squad, as_of):
        roster = make_roster(
            starters, captain_id="a1", booster=RecoveryBoost("m1"), fatigue_state={"m1": 0.5},
        )
        stats = _stats(starters, m1={"minutes_played": 0})
        result = score_game_week(roster, stats, squad, as_of)

        line = result.per_player["m1"]
        assert line.fatigue_before == pytest.approx(0.5)
        assert line.fatigue_after == pytest.approx(0.6)
        assert result.team.booster_refunded is True
        assert result.team.booster_status == "Recovery Boost refunded: Player m1 did not play."

    def test_recovery_boost_on_bench_target_is_refunded(self, make_roster, starters, bench, squad, as_of):
        roster = make_roster(starters, bench, booster=RecoveryBoost("m4"), fatigue_state={"m4": 0.3})
        result = score_game_week(roster, _stats(starters), squad, as_of)

        assert result.team.booster_refunded is True
        assert result.per_player["m4"].fatigue_before == pytest.approx(0.3)

    def test_recovery_boost_spent_without_refunds(self, make_roster, starters, squad, as_of, monkeypatch):
        from fantasy_scoring.config import MODEL_CONFIG

        monkeypatch.setattr(MODEL_CONFIG["booster"], "refund_recovery_if_unused", False)
        roster = make_roster(starters, booster=RecoveryBoost("m1"), fatigue_state={"m1": 0.5})
        result = score_game_week(roster, _stats(starters, m1={"minutes_played": 0}), squad, as_of)

        assert result.team.booster_refunded is False
        assert result.per_player["m1"].fatigue_before == pytest.approx(1.0)
        assert result.per_player["m1"].fatigue_after == pytest.approx(1.0)


class TestFinalizeRoster:
    def test_consumes_booster_and_keeps_inputs(self, make_roster, starters, squad, as_of):
        roster = make_roster(starters, booster=DoubleImpact(), fatigue_state={"m1": 0.7})
        result = score_game_week(roster, _stats(starters), squad, as_of)
        finalize_roster(roster, result)

        assert roster.locked is True
        assert roster.booster_state == BoosterState.RESOLVED
        assert roster.fatigue_state == {"m1": 0.7}

    def test_finalized_roster_rescores_identically(self, make_roster, starters, squad, as_of):
        roster = make_roster(starters, captain_id="m2", fatigue_state={"m2": 0.9})
        stats = _stats(starters)
        result = score_game_week(roster, stats, squad, as_of)
        finalize_roster(roster, result)

        assert score_game_week(roster, stats, squad, as_of).to_dict() == result.to_dict()

    def test_refund_clears_booster(self, make_roster, starters, squad, as_of):
        roster = make_roster(starters, booster=RecoveryBoost("m1"))
        result = score_game_week(roster, _stats(starters, m1={"minutes_played": 0}), squad, as_of)
        finalize_roster(roster, result)

        assert isinstance(roster.booster, NoBooster)
        assert roster.booster_state == BoosterState.NONE


# =============================================================================
# LEADERBOARD
# =============================================================================

def _result(total, label=None):
    return GameWeekResult(per_player={}, team=TeamGameWeekResult(total_points=total, bonus_label=label))


class TestLeaderboard:
    def test_sorted_highest_first(self):
        board = build_leaderboard({"u1": _result(5.0), "u2": _result(12.34, "Crazy"), "u3": _result(8.0)})

        assert [e.user_id for e in board] == ["u2", "u3", "u1"]
        assert [e.rank for e in board] == [1, 2, 3]
        assert board[0].total_points == 12.3
        assert board[0].bonus_label == "Crazy"

    def test_ties_after_rounding_break_by_user_id(self):
        board = build_leaderboard({"zed": _result(10.04), "amy": _result(9.96)})
        assert [e.user_id for e in board] == ["amy", "zed"]
        assert board[0].total_points == board[1].total_points == 10.0

    def test_empty(self):
        assert build_leaderboard({}) == []

    def test_process_game_week(self, make_roster, starters, squad, as_of):
        rosters = [
            make_roster(starters, user_id="plain"),
            make_roster(starters, user_id="golden", booster=GoldenGame()),
        ]
        results, board = process_game_week(rosters, _stats(starters), squad, as_of)

        assert set(results) == {"plain", "golden"}
        assert board[0].user_id == "golden"
        assert board[0].booster_kind == "golden_game"
        # Pure: rosters untouched
        assert all(not r.locked for r in rosters)


# =============================================================================
# GAMESTORE LIFECYCLE
# =============================================================================

@pytest.fixture
def live_store(store, squad, as_of):
    store.upsert_players(squad.values())
    store.create_gameweek(GameWeek(id="gw1", name="GameWeek 1", formation="2-3-1", as_of=as_of))
    return store


class TestGameStore:
    def test_submit_checks_formation(self, live_store):
        with pytest.raises(RosterError):
            live_store.submit_roster("gw1", "u1", ["gk1", "d1", "d2", "m1", "m2", "m3", "m4"], "m1")

    def test_submit_rejects_unknown_players(self, live_store, starters):
        with pytest.raises(ScoringInputError):
            live_store.submit_roster("gw1", "u1", starters, "m1", ["ghost"])

    def test_submit_after_lock(self, live_store, starters):
        live_store.submit_roster("gw1", "u1", starters, "m1")
        assert live_store.lock_gameweek("gw1") == 1
        assert live_store.get_gameweek("gw1").status == GameWeekStatus.LIVE

        with pytest.raises(BoosterLockedError):
            live_store.submit_roster("gw1", "u2", starters, "m1")
        with pytest.raises(BoosterLockedError):
            live_store.select_booster("gw1", "u1", GoldenGame())

    def test_duplicate_gameweek(self, live_store):
        with pytest.raises(RosterError):
            live_store.create_gameweek(GameWeek(id="gw1"))

    def test_unknown_formation(self, live_store):
        with pytest.raises(ScoringInputError):
            live_store.create_gameweek(GameWeek(id="gw9", formation="5-5-0"))

    def test_missing_gameweek(self, live_store):
        with pytest.raises(KeyError):
            live_store.lock_gameweek("nope")

    def test_ingest_unknown_player(self, live_store):
        with pytest.raises(ScoringInputError):
            live_store.ingest_stats("gw1", {"ghost": GameWeekStats(minutes_played=90)})

    def test_refresh_statuses(self, live_store):
        from fantasy_scoring.models import RollingStatsSummary

        summary = RollingStatsSummary(8.0, 8.0, 8.0, 900, 900)
        assert live_store.refresh_statuses({"m3": summary}) == 1
        assert live_store.get_player("m3").category == "Star"

        with pytest.raises(ScoringInputError):
            live_store.refresh_statuses({"ghost": summary})

    def test_live_score_never_writes_fatigue(self, live_store, starters):
        live_store.submit_roster("gw1", "u1", starters, "m1")
        live_store.ingest_stats("gw1", _stats(starters))

        first = live_store.live_score("gw1", "u1")
        second = live_store.live_score("gw1", "u1")

        assert first.to_dict() == second.to_dict()
        assert live_store.fatigue_by_user == {}

    def test_process_writes_once(self, live_store, starters):
        live_store.submit_roster("gw1", "u1", starters, "m1", booster=DoubleImpact())
        live_store.submit_roster("gw1", "u2", starters, "a1")
        live_store.lock_gameweek("gw1")
        live_store.ingest_stats("gw1", _stats(starters))

        board = live_store.process_gameweek("gw1")

        assert [e.user_id for e in board] == ["u1", "u2"]
        assert live_store.get_gameweek("gw1").status == GameWeekStatus.FINISHED
        assert live_store.fatigue_by_user["u1"]["m2"] == pytest.approx(0.8)
        assert live_store.get_leaderboard("gw1") == board
        assert live_store.used_boosters["u1"] == {"double_impact"}

        with pytest.raises(RosterError):
            live_store.process_gameweek("gw1")
        assert live_store.fatigue_by_user["u1"]["m2"] == pytest.approx(0.8)

    def test_live_score_after_process_matches_stored_result(self, live_store, starters):
        live_store.submit_roster("gw1", "u1", starters, "m1")
        live_store.lock_gameweek("gw1")
        live_store.ingest_stats("gw1", _stats(starters))
        live_store.process_gameweek("gw1")

        stored = live_store.results["gw1"]["u1"]
        rescored = live_store.live_score("gw1", "u1")

        assert rescored.to_dict() == stored.to_dict()
        assert rescored.per_player["m2"].fatigue_before == pytest.approx(1.0)

    def test_no_substitution_once_finished(self, live_store, starters, bench):
        live_store.submit_roster("gw1", "u1", starters, "m1", bench)
        live_store.lock_gameweek("gw1")
        live_store.ingest_stats("gw1", _stats(starters, m3={"minutes_played": 0}))
        live_store.process_gameweek("gw1")

        with pytest.raises(RosterError, match="finished"):
            live_store.substitute("gw1", "u1", "m3", "m4")

        roster = live_store.get_roster("gw1", "u1")
        assert "m3" in roster.starters
        assert roster.substitution is None
        assert live_store.live_score("gw1", "u1").to_dict() == live_store.results["gw1"]["u1"].to_dict()

    def test_booster_cannot_be_armed_on_two_open_gameweeks(self, live_store, starters, as_of):
        live_store.create_gameweek(GameWeek(id="gw2", formation="2-3-1", as_of=as_of))
        live_store.submit_roster("gw1", "u1", starters, "m1", booster=GoldenGame())

        with pytest.raises(RosterError, match="already armed"):
            live_store.submit_roster("gw2", "u1", starters, "m1", booster=GoldenGame())

        live_store.submit_roster("gw2", "u1", starters, "m1")
        with pytest.raises(RosterError, match="already armed"):
            live_store.select_booster("gw2", "u1", GoldenGame())

        # Re-arming in the same GameWeek and other users are unaffected
        live_store.select_booster("gw1", "u1", GoldenGame())
        live_store.submit_roster("gw2", "u2", starters, "m1", booster=GoldenGame())

    def test_booster_freed_when_cleared_elsewhere(self, live_store, starters, as_of):
        live_store.create_gameweek(GameWeek(id="gw2", formation="2-3-1", as_of=as_of))
        live_store.submit_roster("gw1", "u1", starters, "m1", booster=DoubleImpact())
        live_store.select_booster("gw1", "u1", NoBooster())

        roster = live_store.submit_roster("gw2", "u1", starters, "m1", booster=DoubleImpact())
        assert roster.booster_state == BoosterState.ARMED

    def test_failed_process_leaves_store_untouched(self, live_store, starters):
        live_store.submit_roster("gw1", "u1", starters, "m1")
        live_store.lock_gameweek("gw1")
        live_store.ingest_stats("gw1", _stats(starters[:-1]))

        with pytest.raises(ScoringInputError):
            live_store.process_gameweek("gw1")

        assert live_store.get_gameweek("gw1").status == GameWeekStatus.LIVE
        assert live_store.fatigue_by_user == {}
        assert live_store.get_leaderboard("gw1") is None

    def test_fatigue_carries_to_next_gameweek(self, live_store, starters, as_of):
        live_store.submit_roster("gw1", "u1", starters, "m1")
        live_store.ingest_stats("gw1", _stats(starters))
        live_store.process_gameweek("gw1")

        live_store.create_gameweek(GameWeek(id="gw2", formation="2-3-1", as_of=as_of))
        roster = live_store.submit_roster("gw2", "u1", starters, "m1")
        assert roster.fatigue_state["m2"] == pytest.approx(0.8)

        live_store.ingest_stats("gw2", _stats(starters))
        result = live_store.live_score("gw2", "u1")
        assert result.per_player["m2"].fatigue_before == pytest.approx(0.8)
        assert result.per_player["m2"].points == pytest.approx(1.2 * 0.8)

    def test_fatigue_is_per_user(self, live_store, starters, as_of):
        live_store.submit_roster("gw1", "u1", starters, "m1")
        live_store.ingest_stats("gw1", _stats(starters))
        live_store.process_gameweek("gw1")

        live_store.create_gameweek(GameWeek(id="gw2", formation="2-3-1", as_of=as_of))
        newcomer = live_store.submit_roster("gw2", "u2", starters, "m1")
        assert newcomer.fatigue_state == {}

    def test_booster_single_use(self, live_store, starters, as_of):
        live_store.submit_roster("gw1", "u1", starters, "m1", booster=GoldenGame())
        live_store.ingest_stats("gw1", _stats(starters))
        live_store.process_gameweek("gw1")

        live_store.create_gameweek(GameWeek(id="gw2", formation="2-3-1", as_of=as_of))
        with pytest.raises(RosterError, match="already been used"):
            live_store.submit_roster("gw2", "u1", starters, "m1", booster=GoldenGame())

        live_store.submit_roster("gw2", "u1", starters, "m1")
        with pytest.raises(RosterError):
            live_store.select_booster("gw2", "u1", GoldenGame())
        live_store.select_booster("gw2", "u1", DoubleImpact())

    def test_refunded_recovery_boost_stays_available(self, live_store, starters, as_of):
        live_store.submit_roster("gw1", "u1", starters, "m1", booster=RecoveryBoost("m3"))
        live_store.ingest_stats("gw1", _stats(starters, m3={"minutes_played": 0}))
        live_store.process_gameweek("gw1")

        assert "recovery_boost" not in live_store.used_boosters.get("u1", set())

        live_store.create_gameweek(GameWeek(id="gw2", formation="2-3-1", as_of=as_of))
        roster = live_store.submit_roster("gw2", "u1", starters, "m1", booster=RecoveryBoost("m3"))
        assert roster.booster_state == BoosterState.ARMED

    def test_substitution_then_process(self, live_store, starters, bench):
        live_store.submit_roster("gw1", "u1", starters, "m3", bench)
        live_store.lock_gameweek("gw1")
        live_store.ingest_stats("gw1", _stats(starters + ["m4"], m3={"minutes_played": 0}))

        live_store.substitute("gw1", "u1", "m3", "m4")
        board = live_store.process_gameweek("gw1")

        result = live_store.results["gw1"]["u1"]
        assert result.per_player["m4"].is_starter is True
        assert result.per_player["m4"].is_captain is True
        assert result.per_player["m3"].is_starter is False
        # m4 captained: 1.2 * 1.1
        assert board[0].total_points == round(8.8 + 0.12, 1)
