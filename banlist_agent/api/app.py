"""
Ban List Agent API — FastAPI endpoints.

Operator-facing control surface for one agent:
- Status and last cycle
- Manual sync trigger
- Current snapshot and recent enforcement outcomes
- Credential reconfiguration
- Sharing and retracting bans on the authority
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from banlist_agent.agent.service import BanListAgent
from banlist_agent.models.ban import BanRecord
from banlist_agent.policy.engine import DEFAULT_REASON
from banlist_agent.remote.client import RemoteResult


# --- Request/Response Models ---

class BanSubmitRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    player_id: str = Field(min_length=1)
    player_name: Optional[str] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None


class ReconfigureRequest(BaseModel):
    api_key: str = Field(min_length=1)


# --- Application Factory ---

def create_app(agent: Optional[BanListAgent] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Shared Ban List Agent API",
        description="Synchronizes and enforces a shared ban list on local game servers",
        version="0.1.0",
    )

    agent = agent or BanListAgent()
    app.state.agent = agent

    # === AGENT ===

    @app.get("/agent/status")
    def agent_status():
        """Scheduler state, snapshot freshness and fetch health."""
        return agent.status().model_dump(mode="json")

    @app.post("/agent/sync")
    async def trigger_sync():
        """Force a fetch-then-sweep cycle."""
        report = await agent.sync_now()
        if report is None:
            raise HTTPException(409, "A sync cycle is already in progress")
        data = report.model_dump(mode="json")
        data["summary"] = {
            "applied": report.sweep.applied,
            "failed": report.sweep.failed,
            "absent": report.sweep.absent,
        }
        return data

    @app.get("/agent/last-cycle")
    def last_cycle():
        """Report of the most recent cycle."""
        report = agent.scheduler.last_report
        if report is None:
            raise HTTPException(404, "No cycle has run yet")
        return report.model_dump(mode="json")

    @app.get("/agent/snapshot")
    def get_snapshot():
        """The ban list currently being enforced."""
        snapshot = agent.store.current
        return {
            "valid": snapshot.valid,
            "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
            "records": [r.model_dump(mode="json") for r in snapshot.records],
        }

    @app.get("/agent/outcomes")
    def get_outcomes(limit: int = 50):
        """Recent enforcement outcomes, oldest first."""
        return [o.model_dump(mode="json") for o in agent.recent_outcomes(limit)]

    @app.post("/agent/reconfigure")
    def reconfigure(req: ReconfigureRequest):
        """Install a new API key; resumes fetching after an auth failure."""
        agent.reconfigure(req.api_key)
        return {"status": "reconfigured", "auth_halted": agent.scheduler.auth_halted}

    # === AUTHORITY ===

    @app.post("/bans")
    async def submit_ban(req: BanSubmitRequest):
        """Share a ban with the authority."""
        record = BanRecord(
            player_id=req.player_id,
            player_name=req.player_name or "Unknown",
            reason=req.reason or DEFAULT_REASON,
            issued_at=datetime.now(timezone.utc),
            origin_server=agent.config.origin_server,
            ip_address=req.ip_address,
        )
        result = await agent.submit_ban(record)
        if result != RemoteResult.SUCCESS:
            raise HTTPException(502, "Ban authority did not accept the ban")
        return {"status": "submitted", "player_id": record.player_id}

    @app.delete("/bans/{player_id}")
    async def retract_ban(player_id: str):
        """Remove a ban from the authority."""
        result = await agent.retract_ban(player_id)
        if result == RemoteResult.NOT_FOUND:
            raise HTTPException(404, "No ban found for player")
        if result != RemoteResult.SUCCESS:
            raise HTTPException(502, "Ban authority did not remove the ban")
        return {"status": "retracted", "player_id": player_id}

    return app
