import asyncio
import shutil

import pytest

from orbitraas import jobs
from orbitraas.context import OrbitContext
from orbitraas.services.state import RecordStore


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


def _run(orchestrator, deployment_config, job_id, payload=None, deploy_first=True):
    async def scenario():
        context = OrbitContext(deployment_config.credentials)
        if deploy_first:
            await orchestrator.deploy(context, deployment_config)
        result = await jobs.dispatch(job_id, orchestrator, context, payload)
        return result, await context.snapshot()

    return asyncio.run(scenario())


@pytest.mark.parametrize(
    ("job_id", "expected"),
    [
        (jobs.RESTART_ROLLUP_JOB_ID, "Failed to restart rollup: Cannot restart - rollup not deployed."),
        (jobs.UPDATE_BRIDGE_JOB_ID, "Failed to update token bridge: Cannot update bridge - rollup not deployed."),
    ],
)
def test_jobs_before_deploy_report_failure_message(orchestrator, deployment_config, job_id, expected):
    result, record = _run(orchestrator, deployment_config, job_id, deploy_first=False)

    assert result.startswith(expected)
    assert record.deployed is False
    assert record.logs == []


def test_restart_job_success_message(orchestrator, deployment_config):
    result, record = _run(orchestrator, deployment_config, jobs.RESTART_ROLLUP_JOB_ID)

    assert result == "Rollup successfully restarted"
    assert record.logs[-1] == "Successfully restarted the chain"


def test_update_bridge_job_flattens_command_error(orchestrator, fake_runner, deployment_config):
    async def scenario():
        context = OrbitContext(deployment_config.credentials)
        await orchestrator.deploy(context, deployment_config)
        fake_runner.fail("bridge_setup", stderr="execution reverted")
        return await jobs.dispatch(jobs.UPDATE_BRIDGE_JOB_ID, orchestrator, context)

    result = asyncio.run(scenario())

    assert result.startswith("Failed to update token bridge: [bridge_setup] Command failed (1)")
    assert "execution reverted" in result


def test_modify_metadata_job_accepts_mapping(orchestrator, deployment_config, make_metadata):
    payload = make_metadata(name="Renamed", chain_id=99).to_dict()

    result, record = _run(orchestrator, deployment_config, jobs.MODIFY_ROLLUP_METADATA_JOB_ID, payload)

    assert result == "Rollup metadata successfully updated"
    assert record.metadata.name == "Renamed"
    assert record.metadata.chain_id == 99


def test_modify_metadata_job_rejects_invalid_payload(orchestrator, deployment_config):
    result, record = _run(
        orchestrator,
        deployment_config,
        jobs.MODIFY_ROLLUP_METADATA_JOB_ID,
        {"name": "Missing everything else"},
    )

    assert result.startswith("Failed to update rollup metadata: Rollup metadata is missing fields")
    assert record.metadata == deployment_config.metadata


def test_modify_metadata_job_before_deploy(orchestrator, deployment_config, make_metadata):
    result, _record = _run(
        orchestrator,
        deployment_config,
        jobs.MODIFY_ROLLUP_METADATA_JOB_ID,
        make_metadata(),
        deploy_first=False,
    )

    assert result.startswith("Failed to update rollup metadata: Cannot update metadata - rollup not deployed.")


def test_dispatch_unknown_job_id(orchestrator, deployment_config):
    result, _record = _run(orchestrator, deployment_config, 42, deploy_first=False)

    assert result == "Failed to dispatch job: unknown job id 42"


def _blocked_state_scenario(orchestrator, deployment_config, tmp_path, job_id, payload=None):
    state_dir = tmp_path / "state"

    async def scenario():
        store = RecordStore(str(state_dir / "record.json"), DummyLogger())
        context = OrbitContext(deployment_config.credentials, store=store)
        await orchestrator.deploy(context, deployment_config)
        shutil.rmtree(state_dir)
        state_dir.write_text("not a directory", encoding="utf-8")
        result = await jobs.dispatch(job_id, orchestrator, context, payload)
        return result, await context.snapshot()

    return asyncio.run(scenario())


def test_metadata_job_flattens_state_write_failure(orchestrator, deployment_config, make_metadata, tmp_path):
    result, record = _blocked_state_scenario(
        orchestrator,
        deployment_config,
        tmp_path,
        jobs.MODIFY_ROLLUP_METADATA_JOB_ID,
        make_metadata(name="Renamed").to_dict(),
    )

    assert result.startswith("Failed to update rollup metadata: Could not write state file")
    assert record.metadata == deployment_config.metadata


def test_restart_job_flattens_state_write_failure(orchestrator, deployment_config, tmp_path):
    result, record = _blocked_state_scenario(orchestrator, deployment_config, tmp_path, jobs.RESTART_ROLLUP_JOB_ID)

    assert result.startswith("Failed to restart rollup: Could not write state file")
    assert "Successfully restarted the chain" not in record.logs
