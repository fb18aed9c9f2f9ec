import logging
from datetime import datetime
from typing import Optional, Dict, Tuple, List, Iterable, Mapping, Set

from fantasy_scoring.config import MODEL_CONFIG
from fantasy_scoring.constants import FORMATIONS
from fantasy_scoring.models import (
    Player, GameWeek, GameWeekStatus, GameWeekStats, RollingStatsSummary,
    Booster, NoBooster, GameWeekResult, LeaderboardEntry,
    ScoringInputError, RosterError, BoosterLockedError,
)
from fantasy_scoring.roster import Roster, validate_roster, validate_formation
from fantasy_scoring.services import (
    refresh_player_statuses, score_game_week, process_game_week, finalize_roster,
)

logger = logging.getLogger("fantasy_scoring")


class GameStore:
    """
    In-memory state behind the API: players, GameWeeks, rosters, statistics,
    per-user fatigue and leaderboards.

    Fatigue is written only by process_gameweek, which refuses to run twice for
    the same GameWeek.
    """

    def __init__(self):
        self.players: Dict[str, Player] = {}
        self.gameweeks: Dict[str, GameWeek] = {}
        # (gameweek_id, user_id) -> roster
        self.rosters: Dict[Tuple[str, str], Roster] = {}
        # gameweek_id -> player_id -> stats
        self.stats: Dict[str, Dict[str, GameWeekStats]] = {}
        # user_id -> player_id -> fatigue carried between GameWeeks
        self.fatigue_by_user: Dict[str, Dict[str, float]] = {}
        # user_id -> booster kinds already consumed this game
        self.used_boosters: Dict[str, Set[str]] = {}
        self.results: Dict[str, Dict[str, GameWeekResult]] = {}
        self.leaderboards: Dict[str, List[LeaderboardEntry]] = {}
        self.last_update: Optional[datetime] = None
        self.stats_last_update: Dict[str, datetime] = {}

    # ============ PLAYERS ============

    def upsert_players(self, players: Iterable[Player]) -> int:
        count = 0
        for player in players:
            self.players[player.id] = player
            count += 1
        self.last_update = datetime.now()
        return count

    def get_player(self, player_id: str) -> Optional[Player]:
        return self.players.get(player_id)

    def refresh_statuses(self, rolling_stats: Mapping[str, RollingStatsSummary]) -> int:
        """Recompute pgs/category before a GameWeek. Returns how many players changed."""
        unknown = [pid for pid in rolling_stats if pid not in self.players]
        if unknown:
            raise ScoringInputError(f"Rolling stats for unknown players: {unknown}")

        refreshed = refresh_player_statuses(self.players.values(), rolling_stats)
        for player in refreshed:
            self.players[player.id] = player
        logger.info(f"Refreshed status for {len(rolling_stats)} players")
        return len(rolling_stats)

    # ============ GAMEWEEKS ============

    def create_gameweek(self, gameweek: GameWeek) -> GameWeek:
        if gameweek.id in self.gameweeks:
            raise RosterError(f"GameWeek {gameweek.id} already exists")
        if gameweek.formation is not None and gameweek.formation not in FORMATIONS:
            raise ScoringInputError(f"Unknown formation: {gameweek.formation}")
        self.gameweeks[gameweek.id] = gameweek
        return gameweek

    def get_gameweek(self, gameweek_id: str) -> Optional[GameWeek]:
        return self.gameweeks.get(gameweek_id)

    def _require_gameweek(self, gameweek_id: str) -> GameWeek:
        gameweek = self.gameweeks.get(gameweek_id)
        if gameweek is None:
            raise KeyError(gameweek_id)
        return gameweek

    def rosters_for(self, gameweek_id: str) -> List[Roster]:
        return [r for (gw, _), r in self.rosters.items() if gw == gameweek_id]

    def get_roster(self, gameweek_id: str, user_id: str) -> Optional[Roster]:
        return self.rosters.get((gameweek_id, user_id))

    def _require_roster(self, gameweek_id: str, user_id: str) -> Roster:
        roster = self.rosters.get((gameweek_id, user_id))
        if roster is None:
            raise KeyError(f"{gameweek_id}/{user_id}")
        return roster

    def lock_gameweek(self, gameweek_id: str) -> int:
        """GameWeek goes live: every roster (and its booster) becomes immutable."""
        gameweek = self._require_gameweek(gameweek_id)
        if gameweek.status == GameWeekStatus.FINISHED:
            raise RosterError(f"GameWeek {gameweek_id} is already finished")

        rosters = self.rosters_for(gameweek_id)
        for roster in rosters:
            roster.lock()
        gameweek.status = GameWeekStatus.LIVE
        logger.info(f"GameWeek {gameweek_id} locked with {len(rosters)} rosters")
        return len(rosters)

    # ============ ROSTERS & BOOSTERS ============

    def submit_roster(
        self,
        gameweek_id: str,
        user_id: str,
        starters: List[str],
        captain_id: str,
        substitutes: Optional[List[str]] = None,
        booster: Optional[Booster] = None,
        fatigue_state: Optional[Dict[str, float]] = None,
    ) -> Roster:
        """Create or replace a user's lineup while the GameWeek is upcoming."""
        gameweek = self._require_gameweek(gameweek_id)
        if gameweek.status != GameWeekStatus.UPCOMING:
            raise BoosterLockedError(f"GameWeek {gameweek_id} has already started")

        roster = Roster(
            user_id=user_id,
            gameweek_id=gameweek_id,
            starters=list(starters),
            captain_id=captain_id,
            substitutes=list(substitutes or []),
        )
        validate_roster(roster, self.players)
        if gameweek.formation:
            validate_formation(roster.starters, self.players, gameweek.formation)

        carried = self.fatigue_by_user.get(user_id, {})
        roster.fatigue_state = {pid: carried[pid] for pid in roster.all_player_ids if pid in carried}
        roster.fatigue_state.update(fatigue_state or {})

        if booster is not None:
            self._check_booster_available(gameweek_id, user_id, booster)
            roster.select_booster(booster, self.players)

        self.rosters[(gameweek_id, user_id)] = roster
        return roster

    def _check_booster_available(self, gameweek_id: str, user_id: str, booster: Booster):
        """Single-use kinds: spent in a processed GameWeek or armed in another open one."""
        if not MODEL_CONFIG["booster"].single_use_per_game or isinstance(booster, NoBooster):
            return
        if booster.kind in self.used_boosters.get(user_id, set()):
            raise RosterError(f"Booster {booster.kind} has already been used")

        for (other_gw, other_user), roster in self.rosters.items():
            if other_user != user_id or other_gw == gameweek_id:
                continue
            if self.gameweeks[other_gw].status == GameWeekStatus.FINISHED:
                continue
            if roster.booster.kind == booster.kind:
                raise RosterError(f"Booster {booster.kind} is already armed for GameWeek {other_gw}")

    def select_booster(self, gameweek_id: str, user_id: str, booster: Booster) -> Roster:
        roster = self._require_roster(gameweek_id, user_id)
        self._check_booster_available(gameweek_id, user_id, booster)
        roster.select_booster(booster, self.players)
        return roster

    def substitute(self, gameweek_id: str, user_id: str, out_id: str, in_id: str) -> Roster:
        gameweek = self._require_gameweek(gameweek_id)
        if gameweek.status == GameWeekStatus.FINISHED:
            raise RosterError(f"GameWeek {gameweek_id} is finished; lineups are final")
        roster = self._require_roster(gameweek_id, user_id)
        roster.substitute(out_id, in_id, self.stats.get(gameweek_id, {}), self.players)
        return roster

    # ============ STATISTICS & SCORING ============

    def ingest_stats(self, gameweek_id: str, stats: Mapping[str, GameWeekStats]) -> int:
        self._require_gameweek(gameweek_id)
        unknown = [pid for pid in stats if pid not in self.players]
        if unknown:
            raise ScoringInputError(f"Statistics for unknown players: {unknown}")

        self.stats.setdefault(gameweek_id, {}).update(stats)
        self.stats_last_update[gameweek_id] = datetime.now()
        return len(stats)

    def live_score(self, gameweek_id: str, user_id: str) -> GameWeekResult:
        """Pure re-run over the latest statistics. Never writes fatigue."""
        gameweek = self._require_gameweek(gameweek_id)
        roster = self._require_roster(gameweek_id, user_id)
        return score_game_week(roster, self.stats.get(gameweek_id, {}), self.players, gameweek.as_of)

    def process_gameweek(self, gameweek_id: str) -> List[LeaderboardEntry]:
        """
        Final scoring pass for every roster of a GameWeek.

        All rosters are scored before anything is written, so a malformed
        roster leaves the store untouched.
        """
        gameweek = self._require_gameweek(gameweek_id)
        if gameweek.status == GameWeekStatus.FINISHED:
            raise RosterError(f"GameWeek {gameweek_id} has already been processed")

        rosters = self.rosters_for(gameweek_id)
        results, leaderboard = process_game_week(
            rosters, self.stats.get(gameweek_id, {}), self.players, gameweek.as_of
        )

        fatigue_writes = 0
        for roster in rosters:
            result = results[roster.user_id]
            finalize_roster(roster, result)
            self.fatigue_by_user.setdefault(roster.user_id, {}).update(result.fatigue_updates)
            fatigue_writes += len(result.fatigue_updates)
            if not isinstance(roster.booster, NoBooster):
                self.used_boosters.setdefault(roster.user_id, set()).add(roster.booster.kind)

        self.results[gameweek_id] = results
        self.leaderboards[gameweek_id] = leaderboard
        gameweek.status = GameWeekStatus.FINISHED

        logger.info(f"Processed GameWeek {gameweek_id}: {len(rosters)} rosters")
        logger.info(f"Updated {fatigue_writes} fatigue values")
        return leaderboard

    def get_leaderboard(self, gameweek_id: str) -> Optional[List[LeaderboardEntry]]:
        return self.leaderboards.get(gameweek_id)

    def reset(self):
        self.__init__()


cache = GameStore()
