"""
Fantasy Scoring Backend: entry point and re-exports.

Code lives in fantasy_scoring/ modules:
- config.py:      MODEL_CONFIG + dataclass configs
- constants.py:   Scoring table, labels, formations, utility functions
- models.py:      Enums, dataclasses, boosters, exceptions, pydantic schemas
- calculators.py: PGS, category, fatigue, player points, team total
- roster.py:      Roster validation, booster state machine, substitution
- services.py:    GameWeek scoring pass, status refresh, leaderboard
- cache.py:       GameStore singleton
- endpoints.py:   FastAPI app + API endpoints

Tests import from `main`; star-imports re-export everything.
"""

# Re-export everything so `from main import X` works
from fantasy_scoring.config import *       # noqa: F401,F403
from fantasy_scoring.constants import *    # noqa: F401,F403
from fantasy_scoring.models import *       # noqa: F401,F403
from fantasy_scoring.calculators import *  # noqa: F401,F403
from fantasy_scoring.roster import *       # noqa: F401,F403
from fantasy_scoring.services import *     # noqa: F401,F403
from fantasy_scoring.cache import *        # noqa: F401,F403
from fantasy_scoring.endpoints import app  # noqa: F401

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
