"""Container engine services for Orbit RaaS."""

import subprocess
from typing import Dict, List, Optional

from orbitraas.errors import CommandError


class DockerRuntimeService:
    """Wraps docker / docker compose invocations used by the rollup lifecycle."""

    PREREQUISITES = (
        ("Docker", ["docker", "--version"]),
        ("Docker Compose", ["docker", "compose", "version"]),
        ("Git", ["git", "--version"]),
        ("NPM", ["npm", "--version"]),
        ("Yarn", ["yarn", "--version"]),
    )
    COMPOSE_PROBE_TIMEOUT = 30

    def __init__(self, logger, console, runner, subprocess_module=subprocess):
        self.logger = logger
        self.console = console
        self.runner = runner
        self.subprocess = subprocess_module

    def get_docker_compose_cmd(self) -> List[str]:
        probe_errors = (self.subprocess.CalledProcessError, self.subprocess.TimeoutExpired, FileNotFoundError)
        try:
            self.subprocess.run(
                ["docker", "compose", "version"],
                check=True,
                capture_output=True,
                timeout=self.COMPOSE_PROBE_TIMEOUT,
            )
            return ["docker", "compose"]
        except probe_errors:
            try:
                self.subprocess.run(
                    ["docker-compose", "--version"],
                    check=True,
                    capture_output=True,
                    timeout=self.COMPOSE_PROBE_TIMEOUT,
                )
                return ["docker-compose"]
            except probe_errors:
                raise CommandError(
                    "Docker Compose is not available. Install Docker Compose v2 (`docker compose`) "
                    "or v1 (`docker-compose`) and try again."
                )

    def check_prerequisites(self) -> Dict[str, bool]:
        """Probes the external tools the pipeline depends on. Never raises."""
        results: Dict[str, bool] = {}
        for label, cmd in self.PREREQUISITES:
            try:
                result = self.runner.run(f"check_{cmd[0]}", cmd, check=False, timeout=30)
            except CommandError as exc:
                self.logger.error("%s check failed: %s", label, exc)
                results[label] = False
                continue

            if result.returncode == 0:
                self.logger.info("%s is available", label)
                results[label] = True
            else:
                self.logger.warning("%s is installed but not responding correctly", label)
                results[label] = False
        return results

    async def pull_image(self, image: str, timeout: Optional[float] = None):
        self.console.print(f"[blue]Pulling {image}...[/blue]")
        await self.runner.run_async("pull_image", ["docker", "pull", image], timeout=timeout)

    async def compose_up(self, compose_cmd: List[str], project_dir: str, timeout: Optional[float] = None):
        await self.runner.run_async(
            "compose_up",
            compose_cmd + ["up", "-d"],
            cwd=project_dir,
            timeout=timeout,
        )

    async def list_container_ids(self, compose_cmd: List[str], project_dir: str) -> List[str]:
        result = await self.runner.run_async(
            "compose_ps",
            compose_cmd + ["ps", "-q"],
            cwd=project_dir,
            timeout=60,
        )
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    async def stop_container(self, container_id: str, timeout: Optional[float] = None):
        await self.runner.run_async(
            f"stop_{container_id[:12]}",
            ["docker", "stop", container_id],
            timeout=timeout,
        )
