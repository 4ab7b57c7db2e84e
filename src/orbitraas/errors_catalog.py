"""Actionable error catalog for Orbit RaaS."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_setting": {
        "what": "{name} not set.",
        "next": "Export {name} or add it to the .env file before starting the service.",
    },
    "not_deployed": {
        "what": "Cannot {action} - rollup not deployed.",
        "next": "Wait for the initial deployment to finish or inspect `/logs` for the failing stage.",
    },
    "deploy_in_progress": {
        "what": "A deployment is already running for this rollup.",
        "next": "Wait for it to finish and check `/status` before starting another one.",
    },
    "clone_target_exists": {
        "what": "Clone target already exists: {path}",
        "next": "Remove the directory or rerun the deployment with `--clean`.",
    },
    "artifact_missing": {
        "what": "Deployment did not generate required configuration files: {files}",
        "next": "Inspect the contract deployment output and the rollup example directory.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
