from dataclasses import dataclass, field
from typing import Dict, List, Tuple


# =============================================================================
# MODEL CONFIGURATION - All calibration constants with documentation
# =============================================================================

@dataclass
class PGSConfig:
    """
    Player Game Score configuration.

    PGS blends the rolling 10-game summary into one quality number:
        base = rating * 0.5 + impact * 0.3 + consistency * 0.2
    then adds a playtime adjustment banded on minutes played / minutes possible.
    """

    rating_weight: float = 0.5
    impact_weight: float = 0.3
    consistency_weight: float = 0.2

    # (min ratio, adjustment) - evaluated top down, first match wins
    playtime_bands: List[Tuple[float, float]] = field(default_factory=lambda: [
        (0.9, 0.30),   # Nailed starter
        (0.5, 0.15),   # Regular rotation
    ])
    playtime_floor_adjustment: float = 0.05  # Everyone else, incl. zero possible minutes


@dataclass
class CategoryConfig:
    """PGS thresholds for Star / Key / Wild. Lower bounds are inclusive."""

    star_threshold: float = 7.5
    key_threshold: float = 6.0


@dataclass
class FatigueConfig:
    """
    Fatigue model configuration.

    Fatigue is a multiplier baseline around 1.0 (100%). Playing drains it by a
    category-dependent amount, resting recovers it up to max_fatigue.
    There is deliberately no floor: repeated overuse drives fatigue below 0.
    """

    max_fatigue: float = 1.0
    rest_recovery: float = 0.1

    reduction_by_category: Dict[str, float] = field(default_factory=lambda: {
        "Star": 0.2,
        "Key": 0.1,
        "Wild": 0.0,
    })


@dataclass
class ScoringConfig:
    """Per-player scoring thresholds."""

    # Minutes and clean sheet points need strictly MORE than this
    minutes_threshold: int = 60


@dataclass
class CaptainConfig:
    """Captain armband configuration."""

    passive_multiplier: float = 1.1


@dataclass
class TeamBonusConfig:
    """
    Exclusive team-composition bonuses.

    Only the single largest satisfied multiplier applies. All-Wild lineups
    satisfy both No Star and Crazy; Crazy wins because 1.40 > 1.25.
    """

    no_star_multiplier: float = 1.25
    crazy_multiplier: float = 1.40
    vintage_multiplier: float = 1.20
    vintage_min_avg_age: float = 30.0


@dataclass
class BoosterConfig:
    """
    Consumable booster configuration.

    double_impact_total is the captain's TOTAL multiplier; the passive captain
    multiplier is part of it, not stacked on top.
    """

    double_impact_total: float = 2.2
    golden_game_multiplier: float = 1.2

    # Recovery Boost
    recovery_fatigue: float = 1.0
    refund_recovery_if_unused: bool = True    # Target DNP -> boost is handed back
    recovery_target_must_start: bool = False  # Bench targets allowed by default
    recovery_excluded_positions: Tuple[str, ...] = ("Goalkeeper",)

    # Each booster kind may be spent once per game
    single_use_per_game: bool = True


@dataclass
class LeaderboardConfig:
    """Leaderboard presentation."""

    points_decimals: int = 1
    pgs_decimals: int = 2


# Initialize global config
MODEL_CONFIG = {
    "pgs": PGSConfig(),
    "category": CategoryConfig(),
    "fatigue": FatigueConfig(),
    "scoring": ScoringConfig(),
    "captain": CaptainConfig(),
    "team_bonus": TeamBonusConfig(),
    "booster": BoosterConfig(),
    "leaderboard": LeaderboardConfig(),
}
