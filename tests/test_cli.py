import asyncio

from click.testing import CliRunner

import orbitraas.cli as cli_module
from orbitraas.services.config_loader import load_deployment_config

REQUIRED_ENV = {
    "DEPLOYER_PRIVATE_KEY": "0xdeployer",
    "BATCH_POSTER_PRIVATE_KEY": "0xposter",
    "VALIDATOR_PRIVATE_KEY": "0xvalidator",
    "AVAIL_ADDR_SEED": "seed words",
    "AVAIL_APP_ID": "7",
    "PARENT_CHAIN_RPC": "https://parent.example/rpc",
}


def _patch_serve(monkeypatch, tmp_path, env=REQUIRED_ENV):
    monkeypatch.chdir(tmp_path)
    for key in REQUIRED_ENV:
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)

    captured = {}

    class FakeOrchestrator:
        def __init__(self, **kwargs):
            captured["orchestrator"] = kwargs

    async def fake_serve(config, orchestrator, host, port, state_file, skip_deploy):
        captured.update(
            config=config,
            host=host,
            port=port,
            state_file=state_file,
            skip_deploy=skip_deploy,
        )

    monkeypatch.setattr(cli_module, "Orchestrator", FakeOrchestrator)
    monkeypatch.setattr(cli_module, "_serve", fake_serve)
    return captured


def test_serve_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    captured = _patch_serve(monkeypatch, tmp_path)
    config_file = tmp_path / "custom.yml"
    config_file.write_text(
        "host: 0.0.0.0\n" "port: 3100\n" "script_timeout: 120\n",
        encoding="utf-8",
    )

    result = CliRunner().invoke(
        cli_module.main,
        ["serve", "--config", str(config_file), "--port", "3200", "--skip-deploy", "--clean"],
    )

    assert result.exit_code == 0, result.output
    assert captured["host"] == "0.0.0.0"
    assert captured["port"] == 3200
    assert captured["skip_deploy"] is True
    assert captured["orchestrator"]["script_timeout"] == 120.0
    assert captured["orchestrator"]["network_timeout"] == cli_module.DEFAULT_NETWORK_TIMEOUT
    assert captured["orchestrator"]["clean"] is True
    assert captured["config"].metadata.avail_app_id == "7"


def test_serve_uses_default_config_file_when_present(tmp_path, monkeypatch):
    captured = _patch_serve(monkeypatch, tmp_path)
    (tmp_path / ".orbitraas.yml").write_text("port: 3300\nstate_file: record.json\n", encoding="utf-8")

    result = CliRunner().invoke(cli_module.main, ["serve"])

    assert result.exit_code == 0, result.output
    assert captured["host"] == cli_module.DEFAULT_BIND_HOST
    assert captured["port"] == 3300
    assert captured["state_file"] == "record.json"
    assert captured["skip_deploy"] is False


def test_serve_reads_env_file(tmp_path, monkeypatch):
    env = dict(REQUIRED_ENV)
    del env["AVAIL_APP_ID"]
    captured = _patch_serve(monkeypatch, tmp_path, env=env)
    monkeypatch.delenv("AVAIL_APP_ID", raising=False)
    env_file = tmp_path / "operator.env"
    env_file.write_text("AVAIL_APP_ID=11\nROLLUP_CHAIN_ID=99\n", encoding="utf-8")

    result = CliRunner().invoke(cli_module.main, ["serve", "--env-file", str(env_file)])

    assert result.exit_code == 0, result.output
    assert captured["config"].metadata.avail_app_id == "11"
    assert captured["config"].metadata.chain_id == 99


def test_serve_fails_before_any_work_when_setting_missing(tmp_path, monkeypatch):
    env = dict(REQUIRED_ENV)
    del env["DEPLOYER_PRIVATE_KEY"]
    captured = _patch_serve(monkeypatch, tmp_path, env=env)

    result = CliRunner().invoke(cli_module.main, ["serve"])

    assert result.exit_code == 1
    assert "DEPLOYER_PRIVATE_KEY not set" in result.output
    assert "orchestrator" not in captured


def test_serve_rejects_unknown_config_keys(tmp_path, monkeypatch):
    _patch_serve(monkeypatch, tmp_path)
    (tmp_path / ".orbitraas.yml").write_text("source: db.dump\n", encoding="utf-8")

    result = CliRunner().invoke(cli_module.main, ["serve"])

    assert result.exit_code == 1
    assert "Unknown configuration keys: source" in result.output


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self.payload


def test_status_command_queries_running_service(monkeypatch):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url))
        return FakeResponse({"deployed": False, "logs": [], "status": "undeployed"})

    monkeypatch.setattr(cli_module.requests, "request", fake_request)

    result = CliRunner().invoke(cli_module.main, ["status", "--url", "http://service:3000/"])

    assert result.exit_code == 0, result.output
    assert calls == [("GET", "http://service:3000/status")]
    assert '"undeployed"' in result.output


def test_logs_command_prints_each_line(monkeypatch):
    monkeypatch.setattr(
        cli_module.requests,
        "request",
        lambda *_args, **_kwargs: FakeResponse(["Successfully pulled avail-nitro-node Docker image"]),
    )

    result = CliRunner().invoke(cli_module.main, ["logs"])

    assert result.exit_code == 0, result.output
    assert "Successfully pulled avail-nitro-node Docker image" in result.output


def test_job_command_posts_metadata_file(tmp_path, monkeypatch):
    metadata_file = tmp_path / "metadata.yml"
    metadata_file.write_text("name: Renamed\nchain_id: 99\n", encoding="utf-8")
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs.get("json")))
        return FakeResponse({"job_id": 1, "result": "Rollup metadata successfully updated"})

    monkeypatch.setattr(cli_module.requests, "request", fake_request)

    result = CliRunner().invoke(cli_module.main, ["job", "metadata", "--metadata-file", str(metadata_file)])

    assert result.exit_code == 0, result.output
    assert calls == [("POST", f"{cli_module.DEFAULT_SERVICE_URL}/jobs/1", {"name": "Renamed", "chain_id": 99})]
    assert "Rollup metadata successfully updated" in result.output


def test_job_command_exits_non_zero_on_failure_message(monkeypatch):
    monkeypatch.setattr(
        cli_module.requests,
        "request",
        lambda *_args, **_kwargs: FakeResponse(
            {"job_id": 2, "result": "Failed to restart rollup: Cannot restart - rollup not deployed."}
        ),
    )

    result = CliRunner().invoke(cli_module.main, ["job", "restart"])

    assert result.exit_code == 1
    assert "Failed to restart rollup" in result.output


def test_job_command_reports_unreachable_service(monkeypatch):
    def fake_request(*_args, **_kwargs):
        raise cli_module.requests.ConnectionError("connection refused")

    monkeypatch.setattr(cli_module.requests, "request", fake_request)

    result = CliRunner().invoke(cli_module.main, ["job", "update-bridge"])

    assert result.exit_code == 1
    assert "Could not reach" in result.output


def test_check_command_exits_non_zero_when_tool_missing(monkeypatch):
    class FakeOrchestrator:
        def check_prerequisites(self):
            return {"Docker": True, "Yarn": False}

    monkeypatch.setattr(cli_module, "Orchestrator", FakeOrchestrator)

    result = CliRunner().invoke(cli_module.main, ["check"])

    assert result.exit_code == 1
    assert "Yarn" in result.output


def test_serve_cancels_unfinished_deploy_when_server_stops(monkeypatch):
    started = {}

    class FakeOrchestrator:
        def check_prerequisites(self):
            return {}

        def start_background_deploy(self, context, config):
            started["task"] = asyncio.create_task(asyncio.sleep(3600))
            return started["task"]

    class FakeServer:
        def __init__(self, config):
            self.config = config

        async def serve(self):
            await asyncio.sleep(0)

    monkeypatch.setattr(cli_module.uvicorn, "Server", FakeServer)
    config = load_deployment_config(REQUIRED_ENV)

    asyncio.run(cli_module._serve(config, FakeOrchestrator(), "127.0.0.1", 3000, None, False))

    assert started["task"].cancelled()
