"""Job handlers invoked by external callers.

Handlers only accept public data. Every outcome is returned as a plain message
string; internal errors are flattened into the message.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .context import OrbitContext
from .core import Orchestrator
from .errors import OrbitError
from .models import RollupMetadata

logger = logging.getLogger("orbitraas")

MODIFY_ROLLUP_METADATA_JOB_ID = 1
RESTART_ROLLUP_JOB_ID = 2
UPDATE_BRIDGE_JOB_ID = 3


async def _flatten(action: str, success: str, operation: Awaitable[None]) -> str:
    try:
        await operation
    except OrbitError as exc:
        logger.error("Failed to %s: %s", action, exc)
        return f"Failed to {action}: {exc}"
    return success


async def modify_rollup_metadata(
    orchestrator: Orchestrator,
    context: OrbitContext,
    payload: Any,
) -> str:
    try:
        metadata = payload if isinstance(payload, RollupMetadata) else RollupMetadata.from_dict(payload)
    except OrbitError as exc:
        return f"Failed to update rollup metadata: {exc}"

    return await _flatten(
        "update rollup metadata",
        "Rollup metadata successfully updated",
        orchestrator.update_metadata(context, metadata),
    )


async def restart_rollup(orchestrator: Orchestrator, context: OrbitContext, payload: Any = None) -> str:
    return await _flatten(
        "restart rollup",
        "Rollup successfully restarted",
        orchestrator.restart(context),
    )


async def update_bridge(orchestrator: Orchestrator, context: OrbitContext, payload: Any = None) -> str:
    return await _flatten(
        "update token bridge",
        "Token bridge successfully updated",
        orchestrator.update_bridge(context),
    )


JobHandler = Callable[[Orchestrator, OrbitContext, Any], Awaitable[str]]

JOB_HANDLERS: Dict[int, JobHandler] = {
    MODIFY_ROLLUP_METADATA_JOB_ID: modify_rollup_metadata,
    RESTART_ROLLUP_JOB_ID: restart_rollup,
    UPDATE_BRIDGE_JOB_ID: update_bridge,
}


async def dispatch(
    job_id: int,
    orchestrator: Orchestrator,
    context: OrbitContext,
    payload: Optional[Any] = None,
) -> str:
    handler = JOB_HANDLERS.get(job_id)
    if handler is None:
        return f"Failed to dispatch job: unknown job id {job_id}"

    logger.info("Dispatching job %s (%s)", job_id, handler.__name__)
    return await handler(orchestrator, context, payload)
