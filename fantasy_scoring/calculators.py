"""
Fantasy Scoring - Calculators Module

Pure scoring functions: PGS + category, fatigue, per-player GameWeek points,
and the team aggregator with its exclusive bonuses. Nothing here does I/O or
mutates its inputs.
"""

from datetime import date
from typing import Optional, Dict, List, Mapping, Sequence

from fantasy_scoring.config import (
    MODEL_CONFIG, PGSConfig, CategoryConfig, FatigueConfig, ScoringConfig,
    CaptainConfig, TeamBonusConfig, BoosterConfig,
)
from fantasy_scoring.constants import (
    BASE_SCORING_TABLE, EVENT_STATS, STAT_LABELS,
    LABEL_MINUTES, LABEL_CLEAN_SHEET, LABEL_RATING, LABEL_FATIGUE,
    LABEL_CAPTAIN, LABEL_DOUBLE_IMPACT,
    BONUS_NO_STAR, BONUS_CRAZY, BONUS_VINTAGE, BONUS_GOLDEN_GAME, BONUS_LABEL_JOINER,
    STAR, WILD,
    calculate_age,
)
from fantasy_scoring.models import (
    Position, Category, Player, RollingStatsSummary, GameWeekStats,
    PlayerQuality, PlayerPoints, BonusCandidate, TeamTotal,
    ScoringInputError,
)

__all__ = [
    # Quality
    "compute_pgs",
    "categorize_pgs",
    "normalize_category",
    "compute_player_quality",
    # Fatigue
    "update_fatigue",
    # Player scoring
    "normalize_position",
    "compute_player_points",
    # Team scoring
    "average_age",
    "evaluate_team_bonuses",
    "select_team_bonus",
    "compute_team_total",
]


# =============================================================================
# PGS CALCULATOR & CATEGORIZER
# =============================================================================

def compute_pgs(stats: RollingStatsSummary, config: Optional[PGSConfig] = None) -> tuple:
    """
    Convert a rolling summary into (pgs, playtime_ratio).

    Zero possible minutes gives a ratio of 0 and therefore the lowest
    playtime band rather than a ZeroDivisionError.
    """
    config = config or MODEL_CONFIG["pgs"]

    base_pgs = (
        stats.rating * config.rating_weight
        + stats.impact * config.impact_weight
        + stats.consistency * config.consistency_weight
    )

    if stats.total_possible_minutes > 0:
        playtime_ratio = stats.minutes_played / stats.total_possible_minutes
    else:
        playtime_ratio = 0.0

    adjustment = config.playtime_floor_adjustment
    for min_ratio, band_adjustment in config.playtime_bands:
        if playtime_ratio >= min_ratio:
            adjustment = band_adjustment
            break

    return base_pgs + adjustment, playtime_ratio


def categorize_pgs(pgs: float, config: Optional[CategoryConfig] = None) -> str:
    """Star >= 7.5 > Key >= 6.0 > Wild."""
    config = config or MODEL_CONFIG["category"]
    if pgs >= config.star_threshold:
        return Category.STAR.value
    if pgs >= config.key_threshold:
        return Category.KEY.value
    return Category.WILD.value


def normalize_category(category) -> str:
    try:
        return Category(category).value
    except ValueError:
        raise ScoringInputError(f"Unknown category: {category!r}")


def compute_player_quality(stats: RollingStatsSummary) -> PlayerQuality:
    """PGS, playtime ratio and category in one call."""
    pgs, playtime_ratio = compute_pgs(stats)
    return PlayerQuality(pgs=pgs, playtime_ratio=playtime_ratio, category=categorize_pgs(pgs))


# =============================================================================
# FATIGUE MODEL
# =============================================================================

def update_fatigue(
    current_fatigue: float,
    category: str,
    played: bool,
    config: Optional[FatigueConfig] = None,
) -> float:
    """
    Next fatigue after one GameWeek.

    Rest recovers and clamps at max_fatigue. Playing subtracts the category's
    reduction with no floor, so fatigue may go negative.
    """
    config = config or MODEL_CONFIG["fatigue"]
    category = normalize_category(category)

    if not played:
        return min(config.max_fatigue, current_fatigue + config.rest_recovery)

    return current_fatigue - config.reduction_by_category.get(category, 0.0)


# =============================================================================
# PLAYER SCORER
# =============================================================================

def normalize_position(position) -> str:
    """Return the canonical position string or raise ScoringInputError."""
    try:
        return Position(position).value
    except ValueError:
        raise ScoringInputError(f"Unknown position: {position!r}")


def _add(breakdown: Dict[str, float], label: str, points: float) -> float:
    """Record a nonzero contribution and hand it back for accumulation."""
    if points:
        breakdown[label] = points
    return points


def compute_player_points(
    stats: GameWeekStats,
    position: str,
    fatigue: float,
    is_captain: bool,
    is_double_impact_active: bool,
    scoring_config: Optional[ScoringConfig] = None,
    captain_config: Optional[CaptainConfig] = None,
    booster_config: Optional[BoosterConfig] = None,
) -> PlayerPoints:
    """
    Score one player's GameWeek.

    Order matters and is mirrored in the breakdown:
    1. Minutes > 60
    2. Clean sheet (only with > 60 minutes)
    3. Every other event stat with a positive count
    4. Rating multiplier:   points *= rating[position]
    5. Fatigue multiplier:  points *= fatigue
    6. Captain passive 1.1x, then the Double Impact residual up to 2.2x total

    Each multiplicative step is recorded as the delta it adds, so the
    breakdown always sums to the total.
    """
    scoring_config = scoring_config or MODEL_CONFIG["scoring"]
    captain_config = captain_config or MODEL_CONFIG["captain"]
    booster_config = booster_config or MODEL_CONFIG["booster"]

    position = normalize_position(position)
    breakdown: Dict[str, float] = {}
    points = 0.0

    plays_full = stats.minutes_played > scoring_config.minutes_threshold

    if plays_full:
        points += _add(breakdown, LABEL_MINUTES, BASE_SCORING_TABLE["minutes_played"][position])

    if stats.clean_sheet and plays_full:
        points += _add(breakdown, LABEL_CLEAN_SHEET, BASE_SCORING_TABLE["clean_sheet"][position])

    for stat in EVENT_STATS:
        value = getattr(stats, stat)
        if value > 0:
            points += _add(breakdown, STAT_LABELS[stat], BASE_SCORING_TABLE[stat][position] * value)

    rating_multiplier = BASE_SCORING_TABLE["rating"][position]
    points += _add(breakdown, LABEL_RATING, points * (rating_multiplier - 1))

    points += _add(breakdown, LABEL_FATIGUE, points * (fatigue - 1))

    if is_captain:
        passive = captain_config.passive_multiplier
        points += _add(breakdown, LABEL_CAPTAIN, points * (passive - 1))

        if is_double_impact_active:
            residual = booster_config.double_impact_total / passive
            points += _add(breakdown, LABEL_DOUBLE_IMPACT, points * (residual - 1))

    return PlayerPoints(total_points=points, breakdown=breakdown)


# =============================================================================
# TEAM AGGREGATOR
# =============================================================================

def average_age(players: Sequence[Player], as_of: Optional[date] = None) -> Optional[float]:
    """Mean whole-year age; None for an empty lineup."""
    if not players:
        return None
    return sum(calculate_age(p.birthdate, as_of) for p in players) / len(players)


def evaluate_team_bonuses(
    starters: Sequence[Player],
    as_of: Optional[date] = None,
    config: Optional[TeamBonusConfig] = None,
) -> List[BonusCandidate]:
    """Every exclusive bonus with its multiplier and whether the lineup qualifies."""
    config = config or MODEL_CONFIG["team_bonus"]

    avg_age = average_age(starters, as_of)
    categories = [normalize_category(p.category) for p in starters]

    return [
        BonusCandidate(
            name=BONUS_NO_STAR,
            multiplier=config.no_star_multiplier,
            satisfied=bool(starters) and all(c != STAR for c in categories),
        ),
        BonusCandidate(
            name=BONUS_CRAZY,
            multiplier=config.crazy_multiplier,
            satisfied=bool(starters) and all(c == WILD for c in categories),
        ),
        BonusCandidate(
            name=BONUS_VINTAGE,
            multiplier=config.vintage_multiplier,
            satisfied=avg_age is not None and avg_age >= config.vintage_min_avg_age,
        ),
    ]


def select_team_bonus(candidates: Sequence[BonusCandidate]) -> Optional[BonusCandidate]:
    """
    Best of the satisfied candidates by multiplier.

    Ties keep the earlier candidate, matching the strict '>' comparison a
    sequential check would use.
    """
    best = None
    for candidate in candidates:
        if candidate.satisfied and (best is None or candidate.multiplier > best.multiplier):
            best = candidate
    return best


def compute_team_total(
    starters: Sequence[Player],
    player_points: Mapping[str, float],
    is_golden_game_active: bool,
    as_of: Optional[date] = None,
    bonus_config: Optional[TeamBonusConfig] = None,
    booster_config: Optional[BoosterConfig] = None,
) -> TeamTotal:
    """
    Sum the starters' points, apply the single best team bonus, then Golden Game.

    Golden Game multiplies after the exclusive bonus:
        final = raw * bonus * 1.2
    An empty starting list scores 0 with no bonus.
    """
    booster_config = booster_config or MODEL_CONFIG["booster"]

    if not starters:
        return TeamTotal(total_points=0.0)

    raw_points = sum(player_points.get(p.id, 0.0) for p in starters)

    best = select_team_bonus(evaluate_team_bonuses(starters, as_of, bonus_config))
    multiplier = best.multiplier if best else 1.0
    labels = [best.name] if best else []

    total = raw_points * multiplier

    if is_golden_game_active:
        total *= booster_config.golden_game_multiplier
        labels.append(BONUS_GOLDEN_GAME)

    return TeamTotal(
        total_points=total,
        raw_points=raw_points,
        bonus_multiplier=multiplier,
        bonus_label=BONUS_LABEL_JOINER.join(labels) if labels else None,
    )
