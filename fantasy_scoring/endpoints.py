"""
Fantasy Scoring - Endpoints Module

FastAPI app initialization, CORS middleware, lifespan handler,
and the scoring API endpoint handlers.
"""

import json
import os
import logging
from pathlib import Path as PathlibPath
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, List, Dict, Any

from fastapi import FastAPI, HTTPException, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fantasy_scoring.config import MODEL_CONFIG
from fantasy_scoring.constants import FORMATIONS, BASE_SCORING_TABLE
from fantasy_scoring.models import (
    Player, GameWeek, GameWeekStatus, booster_from_kind,
    RollingStatsIn, FatigueRequest, PlayerIn, RosterIn, BoosterIn, ScoreRequest,
    RollingStatsBulkIn, GameWeekStatsBulkIn, GameWeekIn, SubstitutionIn,
    LeaderboardEntryOut,
    ScoringInputError, RosterError,
)
from fantasy_scoring.cache import cache
from fantasy_scoring.calculators import compute_player_quality, update_fatigue
from fantasy_scoring.roster import Roster
from fantasy_scoring.services import score_game_week


logger = logging.getLogger("fantasy_scoring")


# ============ HELPER FUNCTIONS (endpoint-specific) ============

def player_to_dict(player: Player) -> Dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "position": player.position,
        "birthdate": player.birthdate.isoformat(),
        "pgs": player.pgs,
        "category": player.category,
        "fatigue": player.fatigue,
        "playtime_ratio": player.playtime_ratio,
        "team_name": player.team_name,
    }


def roster_to_dict(roster: Roster) -> Dict[str, Any]:
    booster = {"kind": roster.booster.kind}
    if hasattr(roster.booster, "target_id"):
        booster["target_id"] = roster.booster.target_id
    return {
        "user_id": roster.user_id,
        "gameweek_id": roster.gameweek_id,
        "starters": list(roster.starters),
        "substitutes": list(roster.substitutes),
        "captain_id": roster.captain_id,
        "booster": booster,
        "booster_state": roster.booster_state.value,
        "locked": roster.locked,
        "substitution": list(roster.substitution) if roster.substitution else None,
    }


def booster_from_payload(payload: Optional[BoosterIn]):
    if payload is None:
        return None
    return booster_from_kind(payload.kind, payload.target_id)


def require_gameweek(gameweek_id: str) -> GameWeek:
    gameweek = cache.get_gameweek(gameweek_id)
    if gameweek is None:
        raise HTTPException(status_code=404, detail=f"GameWeek {gameweek_id} not found")
    return gameweek


def require_roster(gameweek_id: str, user_id: str) -> Roster:
    require_gameweek(gameweek_id)
    roster = cache.get_roster(gameweek_id, user_id)
    if roster is None:
        raise HTTPException(status_code=404, detail=f"No roster for {user_id} in GameWeek {gameweek_id}")
    return roster


# ============ STARTUP DATA LOADER ============

def load_players_from_file(path: Optional[PathlibPath] = None) -> int:
    """
    Seed the player registry from a JSON list of players.

    Looks for (first match wins):
    1. $FANTASY_PLAYERS_FILE
    2. ./data/players.json (relative to working dir)
    3. ../data/players.json (development)
    """
    if path is None:
        possible_paths = [
            PathlibPath("data/players.json"),
            PathlibPath(__file__).parent.parent / "data" / "players.json",
        ]
        env_path = os.environ.get("FANTASY_PLAYERS_FILE")
        if env_path:
            possible_paths.insert(0, PathlibPath(env_path))
        path = next((p for p in possible_paths if p.exists()), None)

    if path is None or not path.exists():
        logger.info("No players.json found - starting with an empty registry")
        return 0

    with open(path, "r") as f:
        data = json.load(f)

    players = [PlayerIn(**row).to_player() for row in data]
    count = cache.upsert_players(players)
    logger.info(f"Loaded {count} players from {path}")
    return count


# ============ LIFESPAN ============

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        load_players_from_file()
    except (OSError, ValueError) as e:
        logger.error(f"Player seed load failed: {e}")

    yield

    logger.info("Fantasy scoring API shutting down")


# ============ APP INITIALIZATION ============

app = FastAPI(title="Fantasy Scoring API", version="1.0.0", lifespan=lifespan)

# In production, replace "*" with specific origins like ["https://yourdomain.com"]
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,  # Set to True only with specific origins, not "*"
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============ ERROR MAPPING ============

@app.exception_handler(ScoringInputError)
async def scoring_input_error_handler(request: Request, exc: ScoringInputError):
    logger.warning(f"{request.url.path}: rejected input: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(RosterError)
async def roster_error_handler(request: Request, exc: RosterError):
    logger.warning(f"{request.url.path}: rule violation: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ============ ENGINE ENDPOINTS (stateless) ============

@app.post("/api/quality")
async def player_quality_endpoint(stats: RollingStatsIn):
    """PGS, playtime ratio and category for one rolling summary."""
    quality = compute_player_quality(stats.to_summary())
    return {
        "pgs": quality.pgs,
        "playtime_ratio": quality.playtime_ratio,
        "category": quality.category,
    }


@app.post("/api/fatigue")
async def fatigue_endpoint(request: FatigueRequest):
    """Next fatigue value after one GameWeek."""
    return {
        "fatigue": update_fatigue(request.current_fatigue, request.category.value, request.played),
    }


@app.post("/api/score")
async def score_endpoint(request: ScoreRequest):
    """
    Score one roster for one GameWeek from an inline payload.

    Nothing is persisted; fatigue_after values are for the caller to store.
    """
    registry = {p.id: p.to_player() for p in request.players}
    roster = Roster(
        user_id=request.roster.user_id,
        gameweek_id="adhoc",
        starters=list(request.roster.starters),
        captain_id=request.roster.captain_id,
        substitutes=list(request.roster.substitutes),
        booster=booster_from_payload(request.roster.booster) or booster_from_kind(None),
        fatigue_state=dict(request.roster.fatigue_state),
    )
    stats = {pid: s.to_stats() for pid, s in request.stats.items()}
    return score_game_week(roster, stats, registry, request.as_of).to_dict()


# ============ PLAYER ENDPOINTS ============

@app.post("/api/players")
async def upsert_players_endpoint(players: List[PlayerIn]):
    count = cache.upsert_players(p.to_player() for p in players)
    return {"status": "ok", "upserted": count}


@app.get("/api/players/{player_id}")
async def get_player_endpoint(player_id: str = Path(...)):
    player = cache.get_player(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Player {player_id} not found")
    return player_to_dict(player)


@app.post("/api/players/refresh")
async def refresh_players_endpoint(data: RollingStatsBulkIn):
    """Pre-GameWeek: recompute every listed player's PGS and category."""
    count = cache.refresh_statuses({pid: s.to_summary() for pid, s in data.stats.items()})
    return {
        "status": "ok",
        "refreshed": count,
        "players": [player_to_dict(cache.players[pid]) for pid in data.stats],
    }


# ============ GAMEWEEK ENDPOINTS ============

@app.post("/api/gameweeks")
async def create_gameweek_endpoint(data: GameWeekIn):
    gameweek = cache.create_gameweek(GameWeek(
        id=data.id, name=data.name, formation=data.formation, as_of=data.as_of,
    ))
    return {"id": gameweek.id, "status": gameweek.status.value, "formation": gameweek.formation}


@app.post("/api/gameweeks/{gameweek_id}/lock")
async def lock_gameweek_endpoint(gameweek_id: str):
    require_gameweek(gameweek_id)
    locked = cache.lock_gameweek(gameweek_id)
    return {"status": GameWeekStatus.LIVE.value, "rosters_locked": locked}


@app.post("/api/gameweeks/{gameweek_id}/stats")
async def ingest_stats_endpoint(gameweek_id: str, data: GameWeekStatsBulkIn):
    require_gameweek(gameweek_id)
    count = cache.ingest_stats(gameweek_id, {pid: s.to_stats() for pid, s in data.stats.items()})
    return {"status": "ok", "ingested": count}


@app.post("/api/gameweeks/{gameweek_id}/rosters")
async def submit_roster_endpoint(gameweek_id: str, data: RosterIn):
    require_gameweek(gameweek_id)
    roster = cache.submit_roster(
        gameweek_id,
        data.user_id,
        starters=data.starters,
        captain_id=data.captain_id,
        substitutes=data.substitutes,
        booster=booster_from_payload(data.booster),
        fatigue_state=data.fatigue_state,
    )
    return roster_to_dict(roster)


@app.put("/api/gameweeks/{gameweek_id}/rosters/{user_id}/booster")
async def select_booster_endpoint(gameweek_id: str, user_id: str, data: BoosterIn):
    require_roster(gameweek_id, user_id)
    roster = cache.select_booster(gameweek_id, user_id, booster_from_payload(data))
    return roster_to_dict(roster)


@app.delete("/api/gameweeks/{gameweek_id}/rosters/{user_id}/booster")
async def clear_booster_endpoint(gameweek_id: str, user_id: str):
    require_roster(gameweek_id, user_id)
    roster = cache.select_booster(gameweek_id, user_id, booster_from_kind(None))
    return roster_to_dict(roster)


@app.post("/api/gameweeks/{gameweek_id}/rosters/{user_id}/substitution")
async def substitution_endpoint(gameweek_id: str, user_id: str, data: SubstitutionIn):
    require_roster(gameweek_id, user_id)
    roster = cache.substitute(gameweek_id, user_id, data.out_id, data.in_id)
    return roster_to_dict(roster)


@app.get("/api/gameweeks/{gameweek_id}/rosters/{user_id}/live")
async def live_score_endpoint(gameweek_id: str, user_id: str):
    """Re-run the scoring pass over the latest statistics. Read-only."""
    require_roster(gameweek_id, user_id)
    return cache.live_score(gameweek_id, user_id).to_dict()


@app.post("/api/gameweeks/{gameweek_id}/process")
async def process_gameweek_endpoint(gameweek_id: str):
    """Final scoring for every roster. Fatigue is written exactly once."""
    require_gameweek(gameweek_id)
    leaderboard = cache.process_gameweek(gameweek_id)
    return {
        "status": GameWeekStatus.FINISHED.value,
        "teams_processed": len(leaderboard),
        "leaderboard": [LeaderboardEntryOut(**vars(e)).model_dump() for e in leaderboard],
    }


@app.get("/api/gameweeks/{gameweek_id}/leaderboard")
async def leaderboard_endpoint(gameweek_id: str):
    require_gameweek(gameweek_id)
    leaderboard = cache.get_leaderboard(gameweek_id)
    if leaderboard is None:
        raise HTTPException(status_code=404, detail=f"GameWeek {gameweek_id} has not been processed")
    return {"leaderboard": [LeaderboardEntryOut(**vars(e)).model_dump() for e in leaderboard]}


# ============ CONFIG & HEALTH ============

@app.get("/api/config")
async def get_model_config():
    """
    Get current scoring configuration.

    Useful for understanding calibration values and debugging.
    """
    return {
        "pgs": {
            "weights": {
                "rating": MODEL_CONFIG["pgs"].rating_weight,
                "impact": MODEL_CONFIG["pgs"].impact_weight,
                "consistency": MODEL_CONFIG["pgs"].consistency_weight,
            },
            "playtime_bands": MODEL_CONFIG["pgs"].playtime_bands,
            "playtime_floor_adjustment": MODEL_CONFIG["pgs"].playtime_floor_adjustment,
        },
        "category": {
            "star_threshold": MODEL_CONFIG["category"].star_threshold,
            "key_threshold": MODEL_CONFIG["category"].key_threshold,
        },
        "fatigue": {
            "max_fatigue": MODEL_CONFIG["fatigue"].max_fatigue,
            "rest_recovery": MODEL_CONFIG["fatigue"].rest_recovery,
            "reduction_by_category": MODEL_CONFIG["fatigue"].reduction_by_category,
        },
        "team_bonus": {
            "no_star": MODEL_CONFIG["team_bonus"].no_star_multiplier,
            "crazy": MODEL_CONFIG["team_bonus"].crazy_multiplier,
            "vintage": MODEL_CONFIG["team_bonus"].vintage_multiplier,
        },
        "boosters": {
            "double_impact": MODEL_CONFIG["booster"].double_impact_total,
            "golden_game": MODEL_CONFIG["booster"].golden_game_multiplier,
        },
        "captain_passive": MODEL_CONFIG["captain"].passive_multiplier,
        "scoring_table": BASE_SCORING_TABLE,
        "formations": FORMATIONS,
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint with store status."""
    return {
        "status": "ok",
        "store": {
            "players": len(cache.players),
            "gameweeks": len(cache.gameweeks),
            "rosters": len(cache.rosters),
            "leaderboards": len(cache.leaderboards),
        },
        "last_update": cache.last_update.isoformat() if cache.last_update else None,
        "today": date.today().isoformat(),
    }


# ============ MAIN ============

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
