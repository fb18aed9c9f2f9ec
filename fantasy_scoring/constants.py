"""
Fantasy Scoring - Constants Module

Static lookup tables (per-position scoring weights, breakdown labels,
formations) and small utility functions shared by the calculators.
"""

from datetime import date
from typing import Dict, Optional


# =============================================================================
# POSITIONS & CATEGORIES
# =============================================================================

GOALKEEPER = "Goalkeeper"
DEFENDER = "Defender"
MIDFIELDER = "Midfielder"
ATTACKER = "Attacker"

POSITIONS = (GOALKEEPER, DEFENDER, MIDFIELDER, ATTACKER)

# Short codes used in formation strings and logs
POSITION_SHORT = {GOALKEEPER: "GK", DEFENDER: "DEF", MIDFIELDER: "MID", ATTACKER: "ATT"}

STAR = "Star"
KEY = "Key"
WILD = "Wild"

CATEGORIES = (STAR, KEY, WILD)


# =============================================================================
# SCORING TABLE
# Points per unit of each statistic, by position. "rating" is not additive:
# it is the position's multiplier applied after every event has been summed.
# =============================================================================

BASE_SCORING_TABLE: Dict[str, Dict[str, float]] = {
    "minutes_played":     {GOALKEEPER: 1,     DEFENDER: 1,    MIDFIELDER: 1,    ATTACKER: 1},
    "clean_sheet":        {GOALKEEPER: 5,     DEFENDER: 4,    MIDFIELDER: 2,    ATTACKER: 0},
    "goals":              {GOALKEEPER: 8,     DEFENDER: 6,    MIDFIELDER: 5,    ATTACKER: 4},
    "assists":            {GOALKEEPER: 4,     DEFENDER: 4,    MIDFIELDER: 3,    ATTACKER: 2},
    "shots_on_target":    {GOALKEEPER: 0.5,   DEFENDER: 0.5,  MIDFIELDER: 0.5,  ATTACKER: 0.5},
    "saves":              {GOALKEEPER: 1 / 3, DEFENDER: 0,    MIDFIELDER: 0,    ATTACKER: 0},
    "penalties_saved":    {GOALKEEPER: 5,     DEFENDER: 0,    MIDFIELDER: 0,    ATTACKER: 0},
    "penalties_scored":   {GOALKEEPER: 3,     DEFENDER: 3,    MIDFIELDER: 3,    ATTACKER: 3},
    "penalties_missed":   {GOALKEEPER: -2,    DEFENDER: -2,   MIDFIELDER: -2,   ATTACKER: -2},
    "yellow_cards":       {GOALKEEPER: -1,    DEFENDER: -1,   MIDFIELDER: -1,   ATTACKER: -1},
    "red_cards":          {GOALKEEPER: -3,    DEFENDER: -3,   MIDFIELDER: -3,   ATTACKER: -3},
    "goals_conceded":     {GOALKEEPER: -1,    DEFENDER: -0.5, MIDFIELDER: 0,    ATTACKER: 0},
    "interceptions":      {GOALKEEPER: 0.3,   DEFENDER: 0.5,  MIDFIELDER: 0.2,  ATTACKER: 0},
    "tackles":            {GOALKEEPER: 0.3,   DEFENDER: 0.5,  MIDFIELDER: 0.2,  ATTACKER: 0},
    "duels_won":          {GOALKEEPER: 0.2,   DEFENDER: 0.3,  MIDFIELDER: 0.3,  ATTACKER: 0.2},
    "duels_lost":         {GOALKEEPER: -0.1,  DEFENDER: -0.1, MIDFIELDER: -0.1, ATTACKER: -0.1},
    "dribbles_succeeded": {GOALKEEPER: 0,     DEFENDER: 0.2,  MIDFIELDER: 0.3,  ATTACKER: 0.3},
    "fouls_committed":    {GOALKEEPER: -0.3,  DEFENDER: -0.3, MIDFIELDER: -0.3, ATTACKER: -0.3},
    "fouls_suffered":     {GOALKEEPER: 0.2,   DEFENDER: 0.2,  MIDFIELDER: 0.2,  ATTACKER: 0.2},
    "rating":             {GOALKEEPER: 1.5,   DEFENDER: 1.3,  MIDFIELDER: 1.2,  ATTACKER: 1.1},
}

# Event statistics scored in the per-action loop, in breakdown order.
# minutes_played, clean_sheet and rating are handled by dedicated steps.
EVENT_STATS = (
    "goals",
    "assists",
    "shots_on_target",
    "saves",
    "penalties_saved",
    "penalties_scored",
    "penalties_missed",
    "yellow_cards",
    "red_cards",
    "goals_conceded",
    "interceptions",
    "tackles",
    "duels_won",
    "duels_lost",
    "dribbles_succeeded",
    "fouls_committed",
    "fouls_suffered",
)


# =============================================================================
# BREAKDOWN LABELS
# =============================================================================

LABEL_MINUTES = "Minutes > 60"
LABEL_CLEAN_SHEET = "Clean Sheet"
LABEL_RATING = "Rating Bonus"
LABEL_FATIGUE = "Fatigue Effect"
LABEL_CAPTAIN = "Captain Bonus"
LABEL_DOUBLE_IMPACT = "Double Impact"

STAT_LABELS = {
    "goals": "Goals",
    "assists": "Assists",
    "shots_on_target": "Shots On Target",
    "saves": "Saves",
    "penalties_saved": "Penalties Saved",
    "penalties_scored": "Penalties Scored",
    "penalties_missed": "Penalties Missed",
    "yellow_cards": "Yellow Cards",
    "red_cards": "Red Cards",
    "goals_conceded": "Goals Conceded",
    "interceptions": "Interceptions",
    "tackles": "Tackles",
    "duels_won": "Duels Won",
    "duels_lost": "Duels Lost",
    "dribbles_succeeded": "Dribbles Succeeded",
    "fouls_committed": "Fouls Committed",
    "fouls_suffered": "Fouls Suffered",
}

# Team bonus labels
BONUS_NO_STAR = "No Star"
BONUS_CRAZY = "Crazy"
BONUS_VINTAGE = "Vintage"
BONUS_GOLDEN_GAME = "Golden Game"
BONUS_LABEL_JOINER = " & "


# =============================================================================
# FORMATIONS
# "DEF-MID-ATT", always with exactly one goalkeeper.
# =============================================================================

FORMATIONS: Dict[str, Dict[str, int]] = {
    "2-3-1": {GOALKEEPER: 1, DEFENDER: 2, MIDFIELDER: 3, ATTACKER: 1},
    "1-3-2": {GOALKEEPER: 1, DEFENDER: 1, MIDFIELDER: 3, ATTACKER: 2},
    "2-2-2": {GOALKEEPER: 1, DEFENDER: 2, MIDFIELDER: 2, ATTACKER: 2},
}

DEFAULT_FORMATION = "2-3-1"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_stat_weight(stat: str, position: str) -> float:
    """Points per unit of `stat` for `position`. Raises KeyError on unknown keys."""
    return BASE_SCORING_TABLE[stat][position]


def calculate_age(birthdate: date, as_of: Optional[date] = None) -> int:
    """
    Age in whole years at `as_of` (default: today).

    The birthday itself counts: someone born 1990-05-10 is 30 on 2020-05-10.
    """
    as_of = as_of or date.today()
    age = as_of.year - birthdate.year
    if (as_of.month, as_of.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def round_points(value: float, decimals: int = 1) -> float:
    """Round for display/leaderboards. Scoring itself never rounds."""
    return round(value, decimals)
