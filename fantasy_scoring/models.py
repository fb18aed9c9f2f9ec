from dataclasses import dataclass, field, fields
from datetime import date
from enum import Enum
from typing import Optional, List, Dict, Any, ClassVar, Union

from pydantic import BaseModel


# ============ ENUMS ============

class Position(str, Enum):
    GOALKEEPER = "Goalkeeper"
    DEFENDER = "Defender"
    MIDFIELDER = "Midfielder"
    ATTACKER = "Attacker"


class Category(str, Enum):
    STAR = "Star"
    KEY = "Key"
    WILD = "Wild"


class BoosterState(str, Enum):
    NONE = "none"
    ARMED = "armed"
    RESOLVED = "resolved"


class GameWeekStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    FINISHED = "finished"


# ============ EXCEPTIONS ============

class ScoringInputError(ValueError):
    """Malformed engine input: unknown player/position, missing stats, broken roster."""


class RosterError(ValueError):
    """A roster or booster change that the game rules do not allow."""


class BoosterLockedError(RosterError):
    """Booster selection attempted after the GameWeek started."""


class SubstitutionError(RosterError):
    """Invalid in-GameWeek substitution."""


# =============================================================================
# INPUT RECORDS
# =============================================================================

@dataclass(frozen=True)
class RollingStatsSummary:
    """Rolling 10-game summary for one player."""
    rating: float
    impact: float
    consistency: float
    minutes_played: float
    total_possible_minutes: float


@dataclass(frozen=True)
class GameWeekStats:
    """One player's raw statistics for one GameWeek."""
    minutes_played: int = 0
    goals: int = 0
    assists: int = 0
    shots_on_target: int = 0
    saves: int = 0
    penalties_saved: int = 0
    penalties_scored: int = 0
    penalties_missed: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    goals_conceded: int = 0
    interceptions: int = 0
    tackles: int = 0
    duels_won: int = 0
    duels_lost: int = 0
    dribbles_succeeded: int = 0
    fouls_committed: int = 0
    fouls_suffered: int = 0
    clean_sheet: bool = False
    rating: float = 0.0

    @property
    def played(self) -> bool:
        return self.minutes_played > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameWeekStats":
        """Build from a feed row. Unknown keys are ignored, nulls become defaults."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})


# =============================================================================
# ENTITIES
# =============================================================================

@dataclass
class Player:
    """Long-lived player entity. pgs/category refreshed before each GameWeek."""
    id: str
    name: str
    position: str
    birthdate: date
    pgs: float = 0.0
    category: str = Category.WILD.value
    fatigue: float = 1.0
    playtime_ratio: Optional[float] = None
    team_name: str = ""


@dataclass
class GameWeek:
    """A scoring period. as_of pins the date ages are evaluated at."""
    id: str
    name: str = ""
    formation: Optional[str] = None
    status: GameWeekStatus = GameWeekStatus.UPCOMING
    as_of: Optional[date] = None


# =============================================================================
# BOOSTERS
# Closed union: NoBooster | DoubleImpact | GoldenGame | RecoveryBoost(target)
# =============================================================================

@dataclass(frozen=True)
class NoBooster:
    kind: ClassVar[str] = "none"


@dataclass(frozen=True)
class DoubleImpact:
    """Captain's total multiplier becomes 2.2x. Follows the armband."""
    kind: ClassVar[str] = "double_impact"


@dataclass(frozen=True)
class GoldenGame:
    """Team total x1.2, applied after the exclusive team bonus."""
    kind: ClassVar[str] = "golden_game"


@dataclass(frozen=True)
class RecoveryBoost:
    """Target's fatigue is reset to full for this GameWeek's scoring pass."""
    target_id: str
    kind: ClassVar[str] = "recovery_boost"

    def __post_init__(self):
        if not self.target_id:
            raise RosterError("Recovery Boost requires a target player")


Booster = Union[NoBooster, DoubleImpact, GoldenGame, RecoveryBoost]

BOOSTER_KINDS = (NoBooster.kind, DoubleImpact.kind, GoldenGame.kind, RecoveryBoost.kind)

# Numeric ids used by the mobile client
BOOSTER_IDS = {DoubleImpact.kind: 1, GoldenGame.kind: 2, RecoveryBoost.kind: 3}


def booster_from_kind(kind: Optional[str], target_id: Optional[str] = None) -> Booster:
    """Build a booster from its wire form. Raises ScoringInputError on unknown kinds."""
    if kind is None or kind == NoBooster.kind:
        return NoBooster()
    if kind == DoubleImpact.kind:
        return DoubleImpact()
    if kind == GoldenGame.kind:
        return GoldenGame()
    if kind == RecoveryBoost.kind:
        return RecoveryBoost(target_id=target_id or "")
    raise ScoringInputError(f"Unknown booster kind: {kind}")


# =============================================================================
# CALCULATOR RESULTS
# =============================================================================

@dataclass(frozen=True)
class PlayerQuality:
    """Output of the PGS calculator + categorizer."""
    pgs: float
    playtime_ratio: float
    category: str


@dataclass
class PlayerPoints:
    """One player's GameWeek points with an ordered audit trail."""
    total_points: float
    breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class BonusCandidate:
    """An exclusive team bonus and whether the lineup qualifies for it."""
    name: str
    multiplier: float
    satisfied: bool


@dataclass
class TeamTotal:
    """Output of the team aggregator."""
    total_points: float
    raw_points: float = 0.0
    bonus_multiplier: float = 1.0
    bonus_label: Optional[str] = None


# =============================================================================
# GAMEWEEK RESULTS
# =============================================================================

@dataclass
class PlayerGameWeekResult:
    """Per-player line of a scoring pass."""
    player_id: str
    points: float
    breakdown: Dict[str, float]
    fatigue_before: float
    fatigue_after: float
    played: bool = False
    is_starter: bool = True
    is_captain: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": self.points,
            "breakdown": dict(self.breakdown),
            "fatigue_before": self.fatigue_before,
            "fatigue_after": self.fatigue_after,
            "played": self.played,
            "is_starter": self.is_starter,
            "is_captain": self.is_captain,
        }


@dataclass
class TeamGameWeekResult:
    """Team line of a scoring pass."""
    total_points: float
    bonus_label: Optional[str]
    raw_points: float = 0.0
    bonus_multiplier: float = 1.0
    booster_kind: str = NoBooster.kind
    booster_status: Optional[str] = None
    booster_refunded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_points": self.total_points,
            "bonus_label": self.bonus_label,
            "raw_points": self.raw_points,
            "bonus_multiplier": self.bonus_multiplier,
            "booster_kind": self.booster_kind,
            "booster_status": self.booster_status,
            "booster_refunded": self.booster_refunded,
        }


@dataclass
class GameWeekResult:
    """Complete, re-derivable outcome of one roster's scoring pass."""
    per_player: Dict[str, PlayerGameWeekResult]
    team: TeamGameWeekResult

    @property
    def fatigue_updates(self) -> Dict[str, float]:
        """player_id -> fatigue to persist once the pass is final."""
        return {pid: r.fatigue_after for pid, r in self.per_player.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "per_player": {pid: r.to_dict() for pid, r in self.per_player.items()},
            "team": self.team.to_dict(),
        }


@dataclass
class LeaderboardEntry:
    """One ranked line of a GameWeek leaderboard."""
    rank: int
    user_id: str
    total_points: float
    bonus_label: Optional[str] = None
    booster_kind: str = NoBooster.kind


# ============ REQUEST / RESPONSE SCHEMAS ============
# These provide contract stability between clients and the scoring API

class RollingStatsIn(BaseModel):
    rating: float
    impact: float
    consistency: float
    minutes_played: float
    total_possible_minutes: float

    def to_summary(self) -> RollingStatsSummary:
        return RollingStatsSummary(
            rating=self.rating,
            impact=self.impact,
            consistency=self.consistency,
            minutes_played=self.minutes_played,
            total_possible_minutes=self.total_possible_minutes,
        )


class FatigueRequest(BaseModel):
    current_fatigue: float
    category: Category
    played: bool


class GameWeekStatsIn(BaseModel):
    """Schema for one player's GameWeek statistics row."""
    minutes_played: int = 0
    goals: int = 0
    assists: int = 0
    shots_on_target: int = 0
    saves: int = 0
    penalties_saved: int = 0
    penalties_scored: int = 0
    penalties_missed: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    goals_conceded: int = 0
    interceptions: int = 0
    tackles: int = 0
    duels_won: int = 0
    duels_lost: int = 0
    dribbles_succeeded: int = 0
    fouls_committed: int = 0
    fouls_suffered: int = 0
    clean_sheet: bool = False
    rating: float = 0.0

    def to_stats(self) -> GameWeekStats:
        return GameWeekStats.from_dict(self.model_dump())


class PlayerIn(BaseModel):
    """Schema for a player in registry payloads."""
    id: str
    name: str
    position: Position
    birthdate: date
    pgs: float = 0.0
    category: Category = Category.WILD
    fatigue: float = 1.0
    team_name: str = ""

    def to_player(self) -> Player:
        return Player(
            id=self.id,
            name=self.name,
            position=self.position.value,
            birthdate=self.birthdate,
            pgs=self.pgs,
            category=self.category.value,
            fatigue=self.fatigue,
            team_name=self.team_name,
        )


class BoosterIn(BaseModel):
    kind: str = NoBooster.kind
    target_id: Optional[str] = None


class RosterIn(BaseModel):
    """Lineup submission."""
    user_id: str
    starters: List[str]
    substitutes: List[str] = []
    captain_id: str
    booster: Optional[BoosterIn] = None
    fatigue_state: Dict[str, float] = {}


class ScoreRequest(BaseModel):
    """Stateless scoring pass: everything needed travels in the body."""
    roster: RosterIn
    stats: Dict[str, GameWeekStatsIn]
    players: List[PlayerIn]
    as_of: Optional[date] = None


class RollingStatsBulkIn(BaseModel):
    stats: Dict[str, RollingStatsIn]


class GameWeekStatsBulkIn(BaseModel):
    stats: Dict[str, GameWeekStatsIn]


class GameWeekIn(BaseModel):
    id: str
    name: str = ""
    formation: Optional[str] = None
    as_of: Optional[date] = None


class SubstitutionIn(BaseModel):
    out_id: str
    in_id: str


class LeaderboardEntryOut(BaseModel):
    rank: int
    user_id: str
    total_points: float
    bonus_label: Optional[str] = None
    booster_kind: str = NoBooster.kind
