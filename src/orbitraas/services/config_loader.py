"""Configuration loading for Orbit RaaS."""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from orbitraas.constants import (
    DEFAULT_CHAIN_ID,
    DEFAULT_EXPLORER_URL,
    DEFAULT_LOCAL_RPC,
    DEFAULT_ROLLUP_NAME,
)
from orbitraas.errors import ConfigurationError
from orbitraas.errors_catalog import actionable_error
from orbitraas.models import DeploymentConfig, OperatorCredentials, RollupMetadata


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "host",
        "port",
        "env_file",
        "working_dir",
        "state_file",
        "verbose",
        "log_file",
        "network_timeout",
        "script_timeout",
        "clean",
        "skip_deploy",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        return parsed


def _required(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if value is None or not value.strip():
        raise ConfigurationError(actionable_error("missing_setting", name=name))
    return value.strip()


def _optional(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def parse_chain_id(raw: Optional[str]) -> int:
    """Falls back to the default chain id when unset or unparsable."""
    if raw is None:
        return DEFAULT_CHAIN_ID
    try:
        chain_id = int(raw.strip())
    except ValueError:
        return DEFAULT_CHAIN_ID
    return chain_id if chain_id >= 0 else DEFAULT_CHAIN_ID


def load_operator_credentials(environ: Mapping[str, str]) -> OperatorCredentials:
    return OperatorCredentials(
        deployer_private_key=_required(environ, "DEPLOYER_PRIVATE_KEY"),
        batch_poster_private_key=_required(environ, "BATCH_POSTER_PRIVATE_KEY"),
        validator_private_key=_required(environ, "VALIDATOR_PRIVATE_KEY"),
        avail_addr_seed=_required(environ, "AVAIL_ADDR_SEED"),
        fallback_s3_access_key=_optional(environ, "FALLBACKS3_ACCESS_KEY"),
        fallback_s3_secret_key=_optional(environ, "FALLBACKS3_SECRET_KEY"),
        fallback_s3_region=_optional(environ, "FALLBACKS3_REGION"),
        fallback_s3_object_prefix=_optional(environ, "FALLBACKS3_OBJECT_PREFIX"),
        fallback_s3_bucket=_optional(environ, "FALLBACKS3_BUCKET"),
    )


def load_rollup_metadata(environ: Mapping[str, str]) -> RollupMetadata:
    return RollupMetadata(
        name=_optional(environ, "ROLLUP_NAME") or DEFAULT_ROLLUP_NAME,
        chain_id=parse_chain_id(environ.get("ROLLUP_CHAIN_ID")),
        avail_app_id=_required(environ, "AVAIL_APP_ID"),
        parent_chain_rpc=_required(environ, "PARENT_CHAIN_RPC"),
        fallback_s3_enable=(environ.get("FALLBACKS3_ENABLE") or "").strip().lower() == "true",
        local_rpc_endpoint=_optional(environ, "ROLLUP_LOCAL_RPC") or DEFAULT_LOCAL_RPC,
        explorer_url=_optional(environ, "ROLLUP_EXPLORER_URL") or DEFAULT_EXPLORER_URL,
    )


def load_deployment_config(environ: Mapping[str, str]) -> DeploymentConfig:
    return DeploymentConfig(
        credentials=load_operator_credentials(environ),
        metadata=load_rollup_metadata(environ),
    )
