import os
import subprocess

import pytest

from orbitraas.constants import GENERATED_CONFIG_FILES
from orbitraas.core import Orchestrator
from orbitraas.errors import CommandError
from orbitraas.models import DeploymentConfig, OperatorCredentials, RollupMetadata


class FakeRunner:
    """Records commands instead of spawning them and fakes the artifacts they produce."""

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.ps_output = "abc123\ndef456\n"
        self.generate_artifacts = True

    def fail(self, name, stderr="boom"):
        self.failures[name] = stderr

    def run(self, name, cmd, **kwargs):
        self.calls.append((name, cmd, kwargs))
        if name in self.failures:
            raise CommandError(f"[{name}] Command failed (1): {' '.join(cmd)}\n{self.failures[name]}")
        if name == "deploy_contracts" and self.generate_artifacts:
            for file_name in GENERATED_CONFIG_FILES:
                with open(os.path.join(kwargs["cwd"], file_name), "w", encoding="utf-8") as file_obj:
                    file_obj.write("{}")
        stdout = self.ps_output if name == "compose_ps" else ""
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    async def run_async(self, name, cmd, **kwargs):
        return self.run(name, cmd, **kwargs)

    def names(self):
        return [name for name, _cmd, _kwargs in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def orchestrator(tmp_path, fake_runner):
    built = Orchestrator(working_dir=str(tmp_path / "orbit-deployment"))
    built.command_runner = fake_runner
    built.docker_runtime_service.runner = fake_runner
    built.docker_runtime_service.get_docker_compose_cmd = lambda: ["docker", "compose"]
    built.provisioning.runner = fake_runner
    return built


def _metadata(**overrides):
    values = {
        "name": "Test Rollup",
        "chain_id": 412346,
        "avail_app_id": "7",
        "parent_chain_rpc": "https://parent.example/rpc",
        "fallback_s3_enable": False,
        "local_rpc_endpoint": "http://localhost:8449",
        "explorer_url": "http://localhost:4000",
    }
    values.update(overrides)
    return RollupMetadata(**values)


@pytest.fixture
def deployment_config():
    return DeploymentConfig(
        credentials=OperatorCredentials(
            deployer_private_key="0xdeployer-secret",
            batch_poster_private_key="0xposter-secret",
            validator_private_key="0xvalidator-secret",
            avail_addr_seed="seed words secret",
        ),
        metadata=_metadata(),
    )


@pytest.fixture
def make_metadata():
    return _metadata
