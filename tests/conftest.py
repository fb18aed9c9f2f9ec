"""Shared fixtures for the fantasy scoring test suite."""
import os
import sys
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from fantasy_scoring.cache import cache
from fantasy_scoring.models import Player, GameWeekStats
from fantasy_scoring.roster import Roster


# Fixed evaluation date so ages never drift
AS_OF = date(2025, 6, 1)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def make_player():
    """Factory for Player entities. Default: 25-year-old Wild midfielder at full fatigue."""
    def _make(player_id="p1", **overrides):
        base = {
            "id": player_id,
            "name": f"Player {player_id}",
            "position": "Midfielder",
            "birthdate": date(2000, 1, 1),
            "pgs": 5.0,
            "category": "Wild",
            "fatigue": 1.0,
        }
        base.update(overrides)
        return Player(**base)
    return _make


@pytest.fixture
def make_stats():
    """Factory for GameWeekStats. Default: 90 minutes, nothing else."""
    def _make(**overrides):
        base = {"minutes_played": 90}
        base.update(overrides)
        return GameWeekStats(**base)
    return _make


@pytest.fixture
def make_roster():
    """Factory for rosters. Captain defaults to the first starter."""
    def _make(starters, substitutes=None, captain_id=None, **overrides):
        base = {
            "user_id": "u1",
            "gameweek_id": "gw1",
            "starters": list(starters),
            "substitutes": list(substitutes or []),
            "captain_id": captain_id or (starters[0] if starters else ""),
        }
        base.update(overrides)
        return Roster(**base)
    return _make


@pytest.fixture
def squad(make_player):
    """
    Nine-player registry: a legal 2-3-1 lineup plus a two-player bench.

    Categories: one Star (m2), three Key, the rest Wild.
    """
    players = [
        make_player("gk1", position="Goalkeeper", category="Key"),
        make_player("d1", position="Defender", category="Wild"),
        make_player("d2", position="Defender", category="Wild"),
        make_player("m1", position="Midfielder", category="Key"),
        make_player("m2", position="Midfielder", category="Star", pgs=8.0),
        make_player("m3", position="Midfielder", category="Wild"),
        make_player("a1", position="Attacker", category="Key"),
        make_player("m4", position="Midfielder", category="Wild"),
        make_player("a2", position="Attacker", category="Wild"),
    ]
    return {p.id: p for p in players}


@pytest.fixture
def starters():
    return ["gk1", "d1", "d2", "m1", "m2", "m3", "a1"]


@pytest.fixture
def bench():
    return ["m4", "a2"]


@pytest.fixture
def store():
    """The module-level GameStore, emptied before and after each test."""
    cache.reset()
    yield cache
    cache.reset()
