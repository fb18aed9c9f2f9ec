"""
Fantasy Scoring - Roster Module

Lineup validation, the per-roster booster state machine
(none -> armed(kind) -> resolved) and the single in-GameWeek substitution.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Mapping, Tuple

from fantasy_scoring.config import MODEL_CONFIG, BoosterConfig
from fantasy_scoring.constants import FORMATIONS, POSITIONS
from fantasy_scoring.models import (
    Player, GameWeekStats,
    Booster, NoBooster, RecoveryBoost, BoosterState,
    ScoringInputError, RosterError, BoosterLockedError, SubstitutionError,
)

logger = logging.getLogger("fantasy_scoring")


@dataclass
class Roster:
    """
    One user's lineup for one GameWeek.

    Editable until locked. After lock only a single substitution (for a
    starter who did not play) is allowed.
    """
    user_id: str
    gameweek_id: str
    starters: List[str]
    captain_id: str
    substitutes: List[str] = field(default_factory=list)
    booster: Booster = field(default_factory=NoBooster)
    # Per-roster fatigue carried between GameWeeks; falls back to Player.fatigue
    fatigue_state: Dict[str, float] = field(default_factory=dict)
    locked: bool = False
    booster_state: BoosterState = BoosterState.NONE
    substitution: Optional[Tuple[str, str]] = None  # (out_id, in_id)

    def __post_init__(self):
        if not isinstance(self.booster, NoBooster) and self.booster_state == BoosterState.NONE:
            self.booster_state = BoosterState.ARMED

    @property
    def all_player_ids(self) -> List[str]:
        return list(self.starters) + list(self.substitutes)

    def is_starter(self, player_id: str) -> bool:
        return player_id in self.starters

    def snapshot(self) -> "Roster":
        """Independent copy, so a scoring pass never aliases caller state."""
        return replace(
            self,
            starters=list(self.starters),
            substitutes=list(self.substitutes),
            fatigue_state=dict(self.fatigue_state),
        )

    # ============ BOOSTER STATE MACHINE ============

    def select_booster(
        self,
        booster: Booster,
        registry: Optional[Mapping[str, Player]] = None,
        config: Optional[BoosterConfig] = None,
    ) -> bool:
        """
        Arm a booster. Returns False when it was already the selection.

        A different kind replaces the previous one while the roster is
        editable. Raises BoosterLockedError once the GameWeek has started.
        """
        if self.locked:
            raise BoosterLockedError(
                f"Roster for {self.user_id} is locked for GameWeek {self.gameweek_id}"
            )
        if booster == self.booster:
            return False

        if isinstance(booster, RecoveryBoost):
            check_recovery_target(self, booster.target_id, registry, config)

        self.booster = booster
        self.booster_state = (
            BoosterState.NONE if isinstance(booster, NoBooster) else BoosterState.ARMED
        )
        return True

    def clear_booster(self) -> bool:
        return self.select_booster(NoBooster())

    def lock(self):
        self.locked = True

    def resolve_booster(self):
        """Mark an armed booster as consumed by a final scoring pass."""
        if self.booster_state == BoosterState.ARMED:
            self.booster_state = BoosterState.RESOLVED

    def refund_booster(self):
        """Hand an unused booster back: the roster ends the GameWeek without one."""
        self.booster = NoBooster()
        self.booster_state = BoosterState.NONE

    # ============ SUBSTITUTION ============

    def substitute(
        self,
        out_id: str,
        in_id: str,
        stats_by_player_id: Mapping[str, GameWeekStats],
        registry: Mapping[str, Player],
    ):
        """
        Swap a starter who did not play for a bench player of the same position.

        Only once per GameWeek, only after lock. The incoming player takes the
        starter's slot in the lineup order and, if needed, the armband.
        """
        if not self.locked:
            raise SubstitutionError("Substitutions open once the GameWeek has started")
        if self.substitution is not None:
            raise SubstitutionError("Only one substitution is allowed per GameWeek")
        if out_id not in self.starters:
            raise SubstitutionError(f"Player {out_id} is not a starter")
        if in_id not in self.substitutes:
            raise ScoringInputError(f"Player {in_id} is not on the bench")

        out_stats = stats_by_player_id.get(out_id)
        if out_stats is not None and out_stats.played:
            raise SubstitutionError(f"Player {out_id} played and cannot be substituted")

        out_player = _lookup(registry, out_id)
        in_player = _lookup(registry, in_id)
        if out_player.position != in_player.position:
            raise SubstitutionError(
                f"Substitute must play {out_player.position}, got {in_player.position}"
            )

        self.starters[self.starters.index(out_id)] = in_id
        self.substitutes[self.substitutes.index(in_id)] = out_id
        if self.captain_id == out_id:
            self.captain_id = in_id
        self.substitution = (out_id, in_id)

        logger.info(
            f"GW {self.gameweek_id} user {self.user_id}: {out_player.name} -> {in_player.name}"
        )


# =============================================================================
# VALIDATION
# =============================================================================

def _lookup(registry: Mapping[str, Player], player_id: str) -> Player:
    player = registry.get(player_id)
    if player is None:
        raise ScoringInputError(f"Unknown player: {player_id}")
    return player


def check_recovery_target(
    roster: Roster,
    target_id: str,
    registry: Optional[Mapping[str, Player]] = None,
    config: Optional[BoosterConfig] = None,
):
    """Game rules for a Recovery Boost target. Raises RosterError."""
    config = config or MODEL_CONFIG["booster"]

    if target_id not in roster.all_player_ids:
        raise RosterError(f"Recovery Boost target {target_id} is not in the roster")
    if config.recovery_target_must_start and target_id not in roster.starters:
        raise RosterError(f"Recovery Boost target {target_id} must be a starter")
    if registry is not None:
        target = _lookup(registry, target_id)
        if target.position in config.recovery_excluded_positions:
            raise RosterError(f"Recovery Boost cannot target a {target.position}")


def validate_roster(roster: Roster, registry: Mapping[str, Player]):
    """
    Structural checks the scoring engine relies on. Raises ScoringInputError.

    Partial lineups are accepted; formation size is a submission rule.
    """
    ids = roster.all_player_ids
    duplicates = [pid for pid, n in Counter(ids).items() if n > 1]
    if duplicates:
        overlap = set(roster.starters) & set(roster.substitutes)
        if overlap:
            raise ScoringInputError(f"Players both starting and on the bench: {sorted(overlap)}")
        raise ScoringInputError(f"Duplicate players in roster: {sorted(duplicates)}")

    for pid in ids:
        _lookup(registry, pid)

    if roster.starters and roster.captain_id not in roster.starters:
        raise ScoringInputError(f"Captain {roster.captain_id} is not a starter")

    if isinstance(roster.booster, RecoveryBoost):
        if not roster.booster.target_id or roster.booster.target_id not in ids:
            raise ScoringInputError(
                f"Recovery Boost target {roster.booster.target_id!r} is not in the roster"
            )


def validate_formation(starters: List[str], registry: Mapping[str, Player], formation: str):
    """Starting lineup must match the formation's per-position counts exactly."""
    required = FORMATIONS.get(formation)
    if required is None:
        raise ScoringInputError(f"Unknown formation: {formation}")

    counts = Counter(_lookup(registry, pid).position for pid in starters)
    for position in POSITIONS:
        if counts.get(position, 0) != required[position]:
            raise RosterError(
                f"Formation {formation} needs {required[position]} {position}(s), "
                f"lineup has {counts.get(position, 0)}"
            )
