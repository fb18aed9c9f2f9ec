"""
Fantasy Scoring - Services Module

GameWeek orchestration on top of the pure calculators: pre-GameWeek status
refresh, the single-roster scoring pass, and processing every roster of a
GameWeek into a ranked leaderboard.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Optional, List, Dict, Iterable, Mapping, Tuple

from fantasy_scoring.config import MODEL_CONFIG, BoosterConfig
from fantasy_scoring.constants import round_points
from fantasy_scoring.calculators import (
    compute_player_quality, update_fatigue, compute_player_points, compute_team_total,
    normalize_position,
)
from fantasy_scoring.models import (
    Player, RollingStatsSummary, GameWeekStats,
    DoubleImpact, GoldenGame, RecoveryBoost,
    PlayerGameWeekResult, TeamGameWeekResult, GameWeekResult, LeaderboardEntry,
    ScoringInputError,
)
from fantasy_scoring.roster import Roster, validate_roster

logger = logging.getLogger("fantasy_scoring")


# =============================================================================
# PRE-GAMEWEEK STATUS REFRESH
# =============================================================================

def refresh_player_statuses(
    players: Iterable[Player],
    rolling_stats: Mapping[str, RollingStatsSummary],
) -> List[Player]:
    """
    Recompute pgs / playtime ratio / category for every player with a summary.

    Players without a summary are returned unchanged. Category is derived from
    the unrounded PGS; the stored PGS is rounded for display.
    """
    decimals = MODEL_CONFIG["leaderboard"].pgs_decimals
    refreshed = []
    for player in players:
        stats = rolling_stats.get(player.id)
        if stats is None:
            refreshed.append(player)
            continue

        quality = compute_player_quality(stats)
        refreshed.append(replace(
            player,
            pgs=round(quality.pgs, decimals),
            playtime_ratio=round(quality.playtime_ratio, decimals),
            category=quality.category,
        ))
    return refreshed


# =============================================================================
# SINGLE-ROSTER SCORING PASS
# =============================================================================

def _resolve_recovery_boost(
    roster: Roster,
    stats_by_player_id: Mapping[str, GameWeekStats],
    registry: Mapping[str, Player],
    config: BoosterConfig,
) -> Tuple[Optional[str], Optional[str], bool]:
    """
    Decide what a Recovery Boost does this pass.

    Returns (override_target_id, status message, refunded). A target that did
    not take the pitch gets the boost back when refunds are enabled.
    """
    target_id = roster.booster.target_id
    target = registry[target_id]
    target_stats = stats_by_player_id.get(target_id)
    played = roster.is_starter(target_id) and target_stats is not None and target_stats.played

    if played or not config.refund_recovery_if_unused:
        return target_id, f"Recovery Boost applied to {target.name}.", False

    logger.warning(
        f"GW {roster.gameweek_id} user {roster.user_id}: Recovery Boost refunded, "
        f"{target.name} did not play"
    )
    return None, f"Recovery Boost refunded: {target.name} did not play.", True


def score_game_week(
    roster: Roster,
    stats_by_player_id: Mapping[str, GameWeekStats],
    player_registry: Mapping[str, Player],
    as_of: Optional[date] = None,
) -> GameWeekResult:
    """
    One full, side-effect-free scoring pass over a roster.

    - Starters are scored from their statistics record (required).
    - Every roster player gets fatigue_before / fatigue_after; substitutes
      always take the rest branch.
    - Recovery Boost overrides the target's fatigue_before for this pass only.
    - Team total uses the starters' points, the best exclusive bonus and
      Golden Game.

    Inputs are never mutated: the caller persists fatigue_after (and resolves
    the booster) once the pass is final. Same inputs, same output.
    """
    booster_config = MODEL_CONFIG["booster"]
    roster = roster.snapshot()
    validate_roster(roster, player_registry)

    missing = [pid for pid in roster.starters if pid not in stats_by_player_id]
    if missing:
        raise ScoringInputError(f"Missing GameWeek statistics for starters: {missing}")

    fatigue_before = {
        pid: roster.fatigue_state.get(pid, player_registry[pid].fatigue)
        for pid in roster.all_player_ids
    }

    booster_status = None
    booster_refunded = False
    if isinstance(roster.booster, RecoveryBoost):
        target_id, booster_status, booster_refunded = _resolve_recovery_boost(
            roster, stats_by_player_id, player_registry, booster_config
        )
        if target_id is not None:
            fatigue_before[target_id] = booster_config.recovery_fatigue

    is_double_impact_active = isinstance(roster.booster, DoubleImpact)
    per_player: Dict[str, PlayerGameWeekResult] = {}
    starter_points: Dict[str, float] = {}

    for pid in roster.starters:
        player = player_registry[pid]
        stats = stats_by_player_id[pid]
        is_captain = pid == roster.captain_id

        result = compute_player_points(
            stats,
            normalize_position(player.position),
            fatigue_before[pid],
            is_captain,
            is_captain and is_double_impact_active,
        )
        starter_points[pid] = result.total_points

        per_player[pid] = PlayerGameWeekResult(
            player_id=pid,
            points=result.total_points,
            breakdown=result.breakdown,
            fatigue_before=fatigue_before[pid],
            fatigue_after=update_fatigue(fatigue_before[pid], player.category, stats.played),
            played=stats.played,
            is_starter=True,
            is_captain=is_captain,
        )
        logger.debug(f"GW {roster.gameweek_id} {player.name}: {result.total_points:.2f} pts")

    for pid in roster.substitutes:
        player = player_registry[pid]
        per_player[pid] = PlayerGameWeekResult(
            player_id=pid,
            points=0.0,
            breakdown={},
            fatigue_before=fatigue_before[pid],
            fatigue_after=update_fatigue(fatigue_before[pid], player.category, False),
            played=False,
            is_starter=False,
        )

    team_total = compute_team_total(
        [player_registry[pid] for pid in roster.starters],
        starter_points,
        isinstance(roster.booster, GoldenGame),
        as_of,
    )

    return GameWeekResult(
        per_player=per_player,
        team=TeamGameWeekResult(
            total_points=team_total.total_points,
            bonus_label=team_total.bonus_label,
            raw_points=team_total.raw_points,
            bonus_multiplier=team_total.bonus_multiplier,
            booster_kind=roster.booster.kind,
            booster_status=booster_status,
            booster_refunded=booster_refunded,
        ),
    )


def finalize_roster(roster: Roster, result: GameWeekResult):
    """
    Apply a final pass's side effects to the roster itself.

    Locks it and consumes or refunds the booster. fatigue_state is left as
    the pass's input so the result can be re-derived; carrying fatigue into
    the next GameWeek is the caller's job.
    Must run at most once per roster per GameWeek.
    """
    roster.lock()
    if result.team.booster_refunded:
        roster.refund_booster()
    else:
        roster.resolve_booster()


# =============================================================================
# GAMEWEEK PROCESSING
# =============================================================================

def build_leaderboard(results: Mapping[str, GameWeekResult]) -> List[LeaderboardEntry]:
    """Rank users by rounded team total, highest first. Ranks are 1-based."""
    decimals = MODEL_CONFIG["leaderboard"].points_decimals
    rows = sorted(
        (
            (round_points(r.team.total_points, decimals), user_id, r)
            for user_id, r in results.items()
        ),
        key=lambda row: (-row[0], row[1]),
    )
    return [
        LeaderboardEntry(
            rank=i + 1,
            user_id=user_id,
            total_points=points,
            bonus_label=r.team.bonus_label,
            booster_kind=r.team.booster_kind,
        )
        for i, (points, user_id, r) in enumerate(rows)
    ]


def process_game_week(
    rosters: Iterable[Roster],
    stats_by_player_id: Mapping[str, GameWeekStats],
    player_registry: Mapping[str, Player],
    as_of: Optional[date] = None,
) -> Tuple[Dict[str, GameWeekResult], List[LeaderboardEntry]]:
    """
    Score every roster of a GameWeek and rank them.

    Pure: rosters are not finalized here, so live refreshes can call this
    as often as they like.
    """
    results: Dict[str, GameWeekResult] = {}
    for roster in rosters:
        results[roster.user_id] = score_game_week(roster, stats_by_player_id, player_registry, as_of)

    leaderboard = build_leaderboard(results)
    logger.info(f"Scored {len(results)} rosters, leaderboard has {len(leaderboard)} entries")
    return results, leaderboard
