"""Long-lived handle shared by the deploy task, job handlers and status reads."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, List, Optional

from .errors import DeploymentInProgressError, FileSystemError, NotDeployedError
from .errors_catalog import actionable_error
from .models import DeploymentRecord, DeploymentStatus, OperatorCredentials, RollupMetadata
from .services.state import RecordStore

logger = logging.getLogger("orbitraas")

RecordMutation = Callable[[DeploymentRecord], None]


class OrbitContext:
    """Owns the deployment record and operator credentials behind separate locks.

    ``_record_lock`` is held only to copy or swap the record, never across disk
    or subprocess work. Mutations are serialized by ``_write_lock``: each one is
    applied to a copy, the copy is persisted, and only then does it replace the
    live record, so a failed save leaves readers on the previous record.
    """

    def __init__(self, credentials: OperatorCredentials, store: Optional[RecordStore] = None):
        self._record = DeploymentRecord()
        self._record_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._credentials = credentials
        self._credentials_lock = asyncio.Lock()
        self._deploy_lock = asyncio.Lock()
        self._store = store

    async def snapshot(self) -> DeploymentRecord:
        async with self._record_lock:
            return self._record.copy()

    async def logs(self) -> List[str]:
        async with self._record_lock:
            return list(self._record.logs)

    async def is_deployed(self) -> bool:
        async with self._record_lock:
            return self._record.deployed

    async def require_deployed(self, action: str) -> DeploymentRecord:
        async with self._record_lock:
            if not self._record.deployed:
                raise NotDeployedError(actionable_error("not_deployed", action=action))
            return self._record.copy()

    async def append_log(self, message: str):
        await self._commit(lambda record: record.logs.append(message))

    async def set_process_handles(self, handles: List[str]):
        def mutate(record: DeploymentRecord):
            record.process_handles = list(handles)

        await self._commit(mutate)

    async def replace_metadata(self, metadata: RollupMetadata):
        def mutate(record: DeploymentRecord):
            if not record.deployed:
                raise NotDeployedError(actionable_error("not_deployed", action="update metadata"))
            record.metadata = metadata

        await self._commit(mutate)

    async def begin_deploy(self):
        def mutate(record: DeploymentRecord):
            record.status = DeploymentStatus.DEPLOYING
            record.last_error = None

        await self._commit(mutate)

    async def complete_deploy(self, metadata: RollupMetadata, handles: List[str]):
        def mutate(record: DeploymentRecord):
            record.metadata = metadata
            record.process_handles = list(handles)
            record.deployed = True
            record.status = DeploymentStatus.DEPLOYED
            record.last_error = None

        await self._commit(mutate)

    async def fail_deploy(self, error: str):
        """Always marks the live record failed; a save error is only logged."""

        def mutate(record: DeploymentRecord):
            record.status = DeploymentStatus.DEPLOY_FAILED
            record.last_error = error

        await self._commit(mutate, best_effort=True)

    async def restore(self, record: DeploymentRecord):
        """Adopts a persisted record at startup. An interrupted deploy counts as failed."""
        restored = record.copy()
        if restored.status == DeploymentStatus.DEPLOYING:
            restored.status = DeploymentStatus.DEPLOY_FAILED
            restored.last_error = "Deployment was interrupted by a service restart."

        async with self._write_lock:
            await self._persist(restored)
            async with self._record_lock:
                self._record = restored

    @asynccontextmanager
    async def credentials(self) -> AsyncIterator[OperatorCredentials]:
        async with self._credentials_lock:
            yield self._credentials

    @asynccontextmanager
    async def deploy_guard(self) -> AsyncIterator[None]:
        if self._deploy_lock.locked():
            raise DeploymentInProgressError(actionable_error("deploy_in_progress"))
        async with self._deploy_lock:
            yield

    async def _commit(self, mutate: RecordMutation, best_effort: bool = False):
        async with self._write_lock:
            async with self._record_lock:
                candidate = self._record.copy()

            mutate(candidate)

            try:
                await self._persist(candidate)
            except FileSystemError as exc:
                if not best_effort:
                    raise
                logger.error("Could not persist deployment record: %s", exc)

            async with self._record_lock:
                self._record = candidate

    async def _persist(self, record: DeploymentRecord):
        if self._store is None:
            return
        await asyncio.to_thread(self._store.save, record)
