"""Provisioning stages for an Avail Orbit rollup."""

import asyncio
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from orbitraas.constants import (
    BRIDGE_L2_RPC_URL,
    BRIDGE_L3_RPC_URL,
    BRIDGE_SCRIPT,
    DEPLOY_SCRIPT,
    DEPLOYMENT_DIR,
    DIR_MODE,
    DOCKER_IMAGE,
    ENV_FILE,
    GENERATED_CONFIG_FILES,
    ORBIT_SDK_BRANCH,
    ORBIT_SDK_DIR,
    ORBIT_SDK_REPO,
    ROLLUP_EXAMPLE_DIR,
    SECRET_FILE_MODE,
    SETUP_CONFIG_DIR,
    SETUP_SCRIPT_DIR,
    SETUP_SCRIPT_REPO,
)
from orbitraas.errors import ArtifactMissingError, CommandError, FileSystemError
from orbitraas.errors_catalog import actionable_error
from orbitraas.models import DeploymentConfig, DeploymentRecord
from orbitraas.services.env_file import build_env_file


@dataclass(frozen=True)
class DeploymentPaths:
    root: str

    @classmethod
    def from_working_dir(cls, working_dir: Optional[str] = None) -> "DeploymentPaths":
        return cls(root=os.path.abspath(working_dir or DEPLOYMENT_DIR))

    @property
    def sdk_dir(self) -> str:
        return os.path.join(self.root, ORBIT_SDK_DIR)

    @property
    def rollup_dir(self) -> str:
        return os.path.join(self.sdk_dir, *ROLLUP_EXAMPLE_DIR)

    @property
    def setup_dir(self) -> str:
        return os.path.join(self.root, SETUP_SCRIPT_DIR)

    @property
    def setup_config_dir(self) -> str:
        return os.path.join(self.setup_dir, SETUP_CONFIG_DIR)

    @property
    def env_file(self) -> str:
        return os.path.join(self.rollup_dir, ENV_FILE)


StageCallable = Callable[[DeploymentConfig, DeploymentRecord], Awaitable[None]]


@dataclass(frozen=True)
class Stage:
    """One ordered pipeline step. A fatal stage aborts the pipeline on error."""

    name: str
    run: StageCallable
    success_log: str
    fatal: bool = True


class ProvisioningStages:
    """Builds/runs the ordered rollup provisioning stages."""

    def __init__(
        self,
        logger,
        console,
        runner,
        docker_runtime,
        filesystem,
        paths: DeploymentPaths,
        network_timeout: Optional[float] = None,
        script_timeout: Optional[float] = None,
        clean: bool = False,
    ):
        self.logger = logger
        self.console = console
        self.runner = runner
        self.docker_runtime = docker_runtime
        self.filesystem = filesystem
        self.paths = paths
        self.network_timeout = network_timeout
        self.script_timeout = script_timeout
        self.clean = clean
        self._compose_cmd: Optional[List[str]] = None

    def stages(self) -> List[Stage]:
        return [
            Stage("pull_image", self.pull_image, "Successfully pulled avail-nitro-node Docker image"),
            Stage("fetch_sources", self.fetch_sources, "Successfully cloned required repositories"),
            Stage(
                "write_config_files",
                self.write_config_files,
                "Successfully created configuration files",
            ),
            Stage("deploy_contracts", self.deploy_contracts, "Successfully deployed rollup contracts"),
            Stage("start_chain", self.start_chain, "Successfully started the chain"),
            Stage("deploy_bridge", self.deploy_bridge, "Successfully deployed token bridge"),
        ]

    async def compose_cmd(self) -> List[str]:
        if self._compose_cmd is None:
            self._compose_cmd = await asyncio.to_thread(self.docker_runtime.get_docker_compose_cmd)
        return self._compose_cmd

    async def pull_image(self, config: DeploymentConfig, record: DeploymentRecord):
        await self.docker_runtime.pull_image(DOCKER_IMAGE, timeout=self.network_timeout)

    async def fetch_sources(self, config: DeploymentConfig, record: DeploymentRecord):
        await asyncio.to_thread(self.filesystem.ensure_dir, self.paths.root, DIR_MODE)

        for target in (self.paths.sdk_dir, self.paths.setup_dir):
            if not os.path.exists(target):
                continue
            if not self.clean:
                raise FileSystemError(actionable_error("clone_target_exists", path=target))
            self.logger.info("Removing previous clone at %s", target)
            await asyncio.to_thread(self.filesystem.cleanup_dir, target)

        self.console.print("[blue]Cloning arbitrum-orbit-sdk...[/blue]")
        await self.runner.run_async(
            "clone_orbit_sdk",
            ["git", "clone", ORBIT_SDK_REPO, self.paths.sdk_dir],
            timeout=self.network_timeout,
        )
        await self.runner.run_async(
            "checkout_orbit_sdk",
            ["git", "checkout", ORBIT_SDK_BRANCH],
            cwd=self.paths.sdk_dir,
            timeout=self.network_timeout,
        )

        self.console.print("[blue]Cloning orbit-setup-script...[/blue]")
        await self.runner.run_async(
            "clone_setup_script",
            ["git", "clone", SETUP_SCRIPT_REPO, self.paths.setup_dir],
            timeout=self.network_timeout,
        )

    async def write_config_files(self, config: DeploymentConfig, record: DeploymentRecord):
        env_file = build_env_file(config)
        await asyncio.to_thread(self.filesystem.ensure_dir, self.paths.rollup_dir)
        await asyncio.to_thread(
            self.filesystem.write_secret_file,
            self.paths.env_file,
            env_file.render(),
            SECRET_FILE_MODE,
        )
        self.logger.debug("Generated %s:\n%s", ENV_FILE, env_file.redacted())

    async def deploy_contracts(self, config: DeploymentConfig, record: DeploymentRecord):
        self.console.print("[blue]Deploying rollup contracts...[/blue]")
        await self.runner.run_async(
            "deploy_contracts",
            ["npm", "run", DEPLOY_SCRIPT],
            cwd=self.paths.rollup_dir,
            timeout=self.script_timeout,
        )

        missing = [
            name
            for name in GENERATED_CONFIG_FILES
            if not os.path.isfile(os.path.join(self.paths.rollup_dir, name))
        ]
        if missing:
            raise ArtifactMissingError(actionable_error("artifact_missing", files=", ".join(missing)))

    async def start_chain(self, config: DeploymentConfig, record: DeploymentRecord):
        await asyncio.to_thread(self.filesystem.ensure_dir, self.paths.setup_config_dir)
        for name in GENERATED_CONFIG_FILES:
            await asyncio.to_thread(
                self.filesystem.copy_file,
                os.path.join(self.paths.rollup_dir, name),
                os.path.join(self.paths.setup_config_dir, name),
            )

        compose_cmd = await self.compose_cmd()
        self.console.print("[blue]Starting the rollup chain...[/blue]")
        await self.docker_runtime.compose_up(compose_cmd, self.paths.setup_dir, timeout=self.network_timeout)

        try:
            handles = await self.docker_runtime.list_container_ids(compose_cmd, self.paths.setup_dir)
        except CommandError as exc:
            self.logger.warning("Could not list chain containers, keeping previous handles: %s", exc)
            return
        record.process_handles = handles

    async def deploy_bridge(self, config: DeploymentConfig, record: DeploymentRecord):
        await self.run_bridge_setup(config.credentials.deployer_private_key)

    async def run_bridge_setup(self, deployer_private_key: str):
        self.console.print("[blue]Setting up the token bridge...[/blue]")
        await self.runner.run_async(
            "bridge_setup",
            ["yarn", "run", BRIDGE_SCRIPT],
            cwd=self.paths.setup_dir,
            env={
                "PRIVATE_KEY": deployer_private_key,
                "L2_RPC_URL": BRIDGE_L2_RPC_URL,
                "L3_RPC_URL": BRIDGE_L3_RPC_URL,
            },
            timeout=self.script_timeout,
        )

    async def restart_chain(self, handles: List[str]):
        """Stops each known container in order, then brings the compose project back up."""
        for handle in handles:
            self.logger.info("Stopping container %s", handle)
            await self.docker_runtime.stop_container(handle, timeout=self.network_timeout)

        compose_cmd = await self.compose_cmd()
        await self.docker_runtime.compose_up(compose_cmd, self.paths.setup_dir, timeout=self.network_timeout)

    async def live_process_handles(self) -> List[str]:
        compose_cmd = await self.compose_cmd()
        return await self.docker_runtime.list_container_ids(compose_cmd, self.paths.setup_dir)
