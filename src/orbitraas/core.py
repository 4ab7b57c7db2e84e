import asyncio
import logging
from typing import Dict, List, Optional

from rich.console import Console

from .constants import DEFAULT_NETWORK_TIMEOUT, DEFAULT_SCRIPT_TIMEOUT
from .context import OrbitContext
from .errors import CommandError, OrbitError
from .models import DeploymentConfig, DeploymentRecord, DeploymentStatus, RollupMetadata
from .services.command_runner import CommandRunner
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.pipeline import DeploymentPaths, ProvisioningStages, Stage

console = Console()
logger = logging.getLogger("orbitraas")


class Orchestrator:
    """Runs the provisioning pipeline and the post-deploy operations against a context."""

    def __init__(
        self,
        working_dir: Optional[str] = None,
        network_timeout: float = DEFAULT_NETWORK_TIMEOUT,
        script_timeout: float = DEFAULT_SCRIPT_TIMEOUT,
        clean: bool = False,
    ):
        self.paths = DeploymentPaths.from_working_dir(working_dir)
        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.docker_runtime_service = DockerRuntimeService(
            logger=logger,
            console=console,
            runner=self.command_runner,
        )
        self.provisioning = ProvisioningStages(
            logger=logger,
            console=console,
            runner=self.command_runner,
            docker_runtime=self.docker_runtime_service,
            filesystem=self.filesystem_service,
            paths=self.paths,
            network_timeout=network_timeout,
            script_timeout=script_timeout,
            clean=clean,
        )

    def check_prerequisites(self) -> Dict[str, bool]:
        return self.docker_runtime_service.check_prerequisites()

    async def deploy(self, context: OrbitContext, config: DeploymentConfig) -> DeploymentRecord:
        """Runs every stage in order and marks the context deployed on full success.

        Each completed stage is committed to the context immediately. The first
        failing stage aborts the run; nothing already applied is rolled back and the
        raised error carries ``stage`` and the partial ``record``.
        """
        async with context.deploy_guard():
            current = await context.snapshot()
            record = DeploymentRecord(
                metadata=config.metadata,
                process_handles=list(current.process_handles),
                status=DeploymentStatus.DEPLOYING,
            )
            await context.begin_deploy()

            stages = self.provisioning.stages()
            logger.info("Deploying rollup '%s' (chain id %s)...", config.metadata.name, config.metadata.chain_id)

            for index, stage in enumerate(stages, start=1):
                try:
                    await self._run_stage(context, stage, config, record, index, len(stages))
                except Exception as exc:
                    if not stage.fatal:
                        logger.warning("Stage %s failed and was skipped: %s", stage.name, exc)
                        continue
                    await self._fail_deploy(context, record, stage.name, exc)
                    raise

            try:
                await context.complete_deploy(record.metadata, record.process_handles)
            except OrbitError as exc:
                await self._fail_deploy(context, record, "complete_deploy", exc)
                raise

            record.deployed = True
            record.status = DeploymentStatus.DEPLOYED
            console.print("[bold green]Rollup deployed successfully![/bold green]")
            logger.info("Rollup deployed successfully")
            return record

    async def _fail_deploy(self, context: OrbitContext, record: DeploymentRecord, stage_name: str, exc: Exception):
        message = f"Stage '{stage_name}' failed: {exc}"
        record.status = DeploymentStatus.DEPLOY_FAILED
        record.last_error = message
        console.print(f"[bold red]Error:[/bold red] {message}")
        logger.error(message)
        await context.fail_deploy(message)
        if isinstance(exc, OrbitError):
            exc.stage = stage_name
            exc.record = record

    async def _run_stage(
        self,
        context: OrbitContext,
        stage: Stage,
        config: DeploymentConfig,
        record: DeploymentRecord,
        index: int,
        total: int,
    ):
        logger.info("Stage %s/%s: %s", index, total, stage.name)
        handles_before = list(record.process_handles)

        await stage.run(config, record)

        if record.process_handles != handles_before:
            await context.set_process_handles(record.process_handles)
        await context.append_log(stage.success_log)
        record.logs.append(stage.success_log)
        console.print(f"[green]{stage.success_log}.[/green]")

    async def restart(self, context: OrbitContext):
        """Stops known containers one at a time, then restarts the compose project.

        Not transactional: the first stop failure aborts and leaves the rest as-is.
        Process handles are not refreshed afterwards.
        """
        record = await context.require_deployed("restart")
        logger.info("Restarting rollup (%s known containers)...", len(record.process_handles))

        await self.provisioning.restart_chain(record.process_handles)

        await context.append_log("Successfully restarted the chain")
        console.print("[green]Rollup restarted.[/green]")

    async def update_metadata(self, context: OrbitContext, metadata: RollupMetadata):
        await context.replace_metadata(metadata)
        logger.info("Rollup metadata replaced (name=%s, chain id=%s)", metadata.name, metadata.chain_id)

    async def update_bridge(self, context: OrbitContext):
        await context.require_deployed("update bridge")

        async with context.credentials() as credentials:
            await self.provisioning.run_bridge_setup(credentials.deployer_private_key)

        await context.append_log("Successfully updated token bridge")
        console.print("[green]Token bridge updated.[/green]")

    async def reconcile(self, context: OrbitContext) -> List[str]:
        """Refreshes process handles from the live container engine, best effort."""
        record = await context.snapshot()
        if not record.deployed:
            return record.process_handles

        try:
            handles = await self.provisioning.live_process_handles()
        except CommandError as exc:
            logger.warning("Could not reconcile container handles, keeping stored ones: %s", exc)
            return record.process_handles

        if handles != record.process_handles:
            logger.info("Reconciled container handles: %s", ", ".join(handles) or "<none>")
            await context.set_process_handles(handles)
        return handles

    def start_background_deploy(self, context: OrbitContext, config: DeploymentConfig) -> asyncio.Task:
        """Schedules a deploy on the running loop; failures are logged, not raised."""

        async def _deploy():
            try:
                await self.deploy(context, config)
            except OrbitError as exc:
                logger.error("Failed to deploy rollup: %s", exc)
            except Exception:
                logger.exception("Unexpected error while deploying rollup")

        return asyncio.create_task(_deploy(), name="orbitraas-deploy")
