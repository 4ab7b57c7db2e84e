"""HTTP surface: read-only status queries plus a local job transport."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI
from fastapi.responses import PlainTextResponse

from . import jobs
from .context import OrbitContext
from .core import Orchestrator

logger = logging.getLogger("orbitraas")


def create_app(context: OrbitContext, orchestrator: Orchestrator) -> FastAPI:
    app = FastAPI(title="Orbit RaaS")

    @app.get("/status")
    async def get_rollup_status() -> Dict[str, Any]:
        record = await context.snapshot()
        return record.to_dict()

    @app.get("/logs")
    async def get_deployment_logs() -> List[str]:
        return await context.logs()

    @app.get("/health", response_class=PlainTextResponse)
    async def health_check() -> str:
        return "OK"

    @app.post("/jobs/{job_id}")
    async def submit_job(job_id: int, payload: Optional[Dict[str, Any]] = Body(default=None)) -> Dict[str, Any]:
        result = await jobs.dispatch(job_id, orchestrator, context, payload)
        return {"job_id": job_id, "result": result}

    return app
