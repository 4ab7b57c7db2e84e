import asyncio
import contextlib
import logging
import os
from typing import Dict, Optional

import click
import requests
import uvicorn
import yaml
from dotenv import dotenv_values
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .constants import (
    DEFAULT_BIND_HOST,
    DEFAULT_BIND_PORT,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_SCRIPT_TIMEOUT,
)
from .context import OrbitContext
from .core import Orchestrator
from .errors import OrbitError
from .jobs import MODIFY_ROLLUP_METADATA_JOB_ID, RESTART_ROLLUP_JOB_ID, UPDATE_BRIDGE_JOB_ID
from .models import DeploymentConfig
from .server import create_app
from .services.config_loader import ConfigLoader, load_deployment_config
from .services.state import RecordStore

DEFAULT_CONFIG_FILE = ".orbitraas.yml"
DEFAULT_SERVICE_URL = f"http://{DEFAULT_BIND_HOST}:{DEFAULT_BIND_PORT}"

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _configure_logging(verbose: bool, log_file: Optional[str]):
    logger = logging.getLogger("orbitraas")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _load_environment(env_file: Optional[str]) -> Dict[str, str]:
    """Process environment wins over values read from the .env file."""
    values: Dict[str, str] = {}
    if env_file:
        if not os.path.exists(env_file):
            raise click.ClickException(f"Env file not found: {env_file}")
        values.update({key: value for key, value in dotenv_values(env_file).items() if value is not None})
    values.update(os.environ)
    return values


async def _serve(
    config: DeploymentConfig,
    orchestrator: Orchestrator,
    host: str,
    port: int,
    state_file: Optional[str],
    skip_deploy: bool,
):
    logger = logging.getLogger("orbitraas")
    store = RecordStore(state_file, logger=logger) if state_file else None
    context = OrbitContext(config.credentials, store=store)

    await asyncio.to_thread(orchestrator.check_prerequisites)

    restored = await asyncio.to_thread(store.load) if store else None
    if restored is not None:
        await context.restore(restored)
        logger.info("Restored deployment record from %s (status: %s)", state_file, restored.status)

    deploy_task = None
    if restored is not None and restored.deployed:
        await orchestrator.reconcile(context)
    elif skip_deploy:
        logger.info("Skipping initial deployment.")
    else:
        logger.info("Deploying Avail Orbit rollup...")
        deploy_task = orchestrator.start_background_deploy(context, config)

    server = uvicorn.Server(
        uvicorn.Config(create_app(context, orchestrator), host=host, port=port, log_config=None)
    )
    logger.info("HTTP server listening on %s:%s", host, port)
    try:
        await server.serve()
    finally:
        if deploy_task is not None and not deploy_task.done():
            logger.warning("Server stopped while the deployment was still running; cancelling it.")
            deploy_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await deploy_task


@click.group()
def main():
    """Provision and operate an Arbitrum Orbit rollup with Avail DA."""


@main.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--env-file", required=False, type=click.Path(), help="Path to a .env file with operator settings.")
@click.option("--host", required=False, help=f"Bind address for the status server (default: {DEFAULT_BIND_HOST}).")
@click.option("--port", required=False, type=int, default=None, help="Bind port for the status server.")
@click.option("--working-dir", required=False, type=click.Path(), help="Deployment working directory.")
@click.option("--state-file", required=False, type=click.Path(), help="Persist the deployment record here.")
@click.option("--network-timeout", required=False, type=float, default=None, help="Timeout for image pull and clones (s).")
@click.option("--script-timeout", required=False, type=float, default=None, help="Timeout for deploy/bridge scripts (s).")
@click.option("--clean", is_flag=True, default=None, help="Remove existing clones before fetching sources.")
@click.option("--skip-deploy", is_flag=True, default=None, help="Serve status and jobs without deploying.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def serve(
    config,
    env_file,
    host,
    port,
    working_dir,
    state_file,
    network_timeout,
    script_timeout,
    clean,
    skip_deploy,
    verbose,
    log_file,
):
    """Deploy the rollup in the background and serve status and jobs over HTTP."""
    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path
        config_values = ConfigLoader().load(resolved_config)
    except OrbitError as exc:
        raise click.ClickException(str(exc)) from exc

    env_file = _resolve_option(env_file, config_values, "env_file")
    if env_file is None and os.path.exists(".env"):
        env_file = ".env"
    host = str(_resolve_option(host, config_values, "host", default=DEFAULT_BIND_HOST))
    port = int(_resolve_option(port, config_values, "port", default=DEFAULT_BIND_PORT))
    working_dir = _resolve_option(working_dir, config_values, "working_dir")
    state_file = _resolve_option(state_file, config_values, "state_file")
    network_timeout = float(
        _resolve_option(network_timeout, config_values, "network_timeout", default=DEFAULT_NETWORK_TIMEOUT)
    )
    script_timeout = float(
        _resolve_option(script_timeout, config_values, "script_timeout", default=DEFAULT_SCRIPT_TIMEOUT)
    )
    clean = bool(_resolve_option(clean, config_values, "clean", default=False))
    skip_deploy = bool(_resolve_option(skip_deploy, config_values, "skip_deploy", default=False))
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    _configure_logging(verbose, log_file)
    logging.getLogger("orbitraas").info("Starting Avail Orbit RaaS")

    try:
        deployment_config = load_deployment_config(_load_environment(env_file))
    except OrbitError as exc:
        raise click.ClickException(str(exc)) from exc

    orchestrator = Orchestrator(
        working_dir=working_dir,
        network_timeout=network_timeout,
        script_timeout=script_timeout,
        clean=clean,
    )

    try:
        asyncio.run(_serve(deployment_config, orchestrator, host, port, state_file, skip_deploy))
    except OrbitError as exc:
        raise click.ClickException(str(exc)) from exc
    except KeyboardInterrupt:
        console.print("[bold red]Shutting down Avail Orbit RaaS...[/bold red]")


@main.command()
def check():
    """Verify that docker, docker compose, git, npm and yarn are available."""
    results = Orchestrator().check_prerequisites()

    table = Table(title="Prerequisites")
    table.add_column("Tool")
    table.add_column("Status")
    for tool, available in results.items():
        table.add_row(tool, "[green]available[/green]" if available else "[red]missing[/red]")
    console.print(table)

    if not all(results.values()):
        raise SystemExit(1)


def _request(method: str, url: str, **kwargs):
    try:
        response = requests.request(method, url, timeout=30, **kwargs)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise click.ClickException(f"Could not reach {url}: {exc}") from exc
    return response.json()


@main.command()
@click.option("--url", default=DEFAULT_SERVICE_URL, show_default=True, help="Base URL of a running service.")
def status(url):
    """Print the deployment record of a running service."""
    console.print_json(data=_request("GET", f"{url.rstrip('/')}/status"))


@main.command()
@click.option("--url", default=DEFAULT_SERVICE_URL, show_default=True, help="Base URL of a running service.")
def logs(url):
    """Print the deployment log lines of a running service."""
    for line in _request("GET", f"{url.rstrip('/')}/logs"):
        console.print(line)


JOB_NAMES = {
    "metadata": MODIFY_ROLLUP_METADATA_JOB_ID,
    "restart": RESTART_ROLLUP_JOB_ID,
    "update-bridge": UPDATE_BRIDGE_JOB_ID,
}


@main.command()
@click.argument("name", type=click.Choice(sorted(JOB_NAMES)))
@click.option(
    "--metadata-file",
    type=click.Path(exists=True),
    help="YAML or JSON file with the new rollup metadata (metadata job only).",
)
@click.option("--url", default=DEFAULT_SERVICE_URL, show_default=True, help="Base URL of a running service.")
def job(name, metadata_file, url):
    """Submit a job to a running service."""
    payload = None
    if name == "metadata":
        if not metadata_file:
            raise click.ClickException("The metadata job requires --metadata-file.")
        try:
            with open(metadata_file, "r", encoding="utf-8") as file_obj:
                payload = yaml.safe_load(file_obj)
        except (yaml.YAMLError, OSError) as exc:
            raise click.ClickException(f"Invalid metadata file '{metadata_file}': {exc}") from exc

    response = _request("POST", f"{url.rstrip('/')}/jobs/{JOB_NAMES[name]}", json=payload)
    result = response.get("result", "")
    console.print(result)
    if result.startswith("Failed"):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
