"""
FastAPI JSON API for Bet Sentinel.

Provides endpoints to record bets, list stored bets, and run the
suspicious-bettor analysis over the recent window.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from ..database import Database, EventCache, db
from ..detection import DetectionConfig, SuspiciousBettorDetector
from ..models import BetEvent, InvalidEventError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(title="Bet Sentinel", docs_url="/docs")

ALL_BETS_KEY = "all_bets"

_cache = EventCache()
_detector = SuspiciousBettorDetector(DetectionConfig.from_settings())


def get_database() -> Database:
    return db


def get_cache() -> EventCache:
    return _cache


def get_detector() -> SuspiciousBettorDetector:
    return _detector


def client_ip(request: Request) -> str:
    """Resolve the caller's IP from proxy headers, falling back to the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content = {"success": False, "message": message}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------


@app.post("/api/bet")
async def create_bet(
    request: Request,
    database: Database = Depends(get_database),
    cache: EventCache = Depends(get_cache),
):
    """Validate and store a single bet."""
    try:
        body = await request.json()
    except ValueError as e:
        return _error(422, "Failed to create bet", f"request body is not JSON: {e}")

    if isinstance(body, dict):
        body = dict(body)
        body["ipAddress"] = client_ip(request)
        body.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        if "geo" not in body and any(k in body for k in ("country", "region", "city", "ll")):
            body["geo"] = {k: body.pop(k, None) for k in ("country", "region", "city", "ll")}

    try:
        event = BetEvent.from_record(body)
    except InvalidEventError as e:
        return _error(422, "Failed to create bet", str(e))

    try:
        bet_id = database.insert_bet(event)
    except sqlite3.Error as e:
        logger.error(f"Error in POST /api/bet: {e}")
        return _error(500, "Failed to create bet", str(e))

    cache.invalidate(ALL_BETS_KEY)
    bet = event.to_record()
    bet["id"] = bet_id
    return {"success": True, "bet": bet}


@app.get("/api/getbets")
async def list_bets(
    database: Database = Depends(get_database),
    cache: EventCache = Depends(get_cache),
):
    """List all stored bets, newest first."""
    try:
        bets = cache.get_or_load(ALL_BETS_KEY, database.get_all_bets)
    except sqlite3.Error as e:
        logger.error(f"Error in GET /api/getbets: {e}")
        return _error(500, "An error occurred while fetching bets.")
    return {"success": True, "bets": bets}


@app.post("/api/checkBets")
async def check_bets(
    top_n: Optional[int] = Query(default=None, ge=1, le=100),
    database: Database = Depends(get_database),
    detector: SuspiciousBettorDetector = Depends(get_detector),
):
    """Run the suspicious-bettor analysis over the recent window."""
    try:
        report = detector.analyze_store(database, datetime.now(timezone.utc), top_n=top_n)
    except (sqlite3.Error, InvalidEventError) as e:
        logger.error(f"Error analyzing frequent bettors: {e}")
        return _error(500, "Failed to analyze betting patterns")

    content = {"success": True}
    content.update(report.to_dict())
    content["message"] = "Frequent betting analysis completed"
    return content
