import json

import pytest
from typer.testing import CliRunner

import infrausage.cli.main as cli_main
from infrausage.cli.main import app, _parse_query_params
from infrausage.core.client import InfraUsageClient

from conftest import BASE_URL, PREFIX

runner = CliRunner()

QUERY_ID = "yorc/infra_usage/heappe/tasks/q1"
QUERY_PATH = f"{PREFIX}/orchestrators/{QUERY_ID}"
SUBMIT_PATH = f"{PREFIX}/orchestrators/yorc/infra_usage/heappe/myLoc"


def _combined_output(result) -> str:
    return f"{result.stdout}{getattr(result, 'stderr', '')}"


@pytest.fixture
def cli_gateway(gateway, monkeypatch, tmp_path):
    """Point the CLI at the fake gateway, away from any local infrausage.yaml."""
    def make_client(settings, polling):
        return InfraUsageClient(settings, polling, http_transport=gateway.transport())

    monkeypatch.setattr(cli_main, "InfraUsageClient", make_client)
    monkeypatch.chdir(tmp_path)
    gateway.on(
        "GET",
        f"{PREFIX}/orchestrators",
        (200, {"json": {"data": {"orchestrators": [{"name": "yorc", "href": "x"}]}}}),
    )
    gateway.on(
        "GET",
        f"{PREFIX}/orchestrators/yorc/registry/infra_usage_collectors",
        (200, {"json": {"data": {"infrastructures": [{"id": "heappe", "origin": "heappe-plugin"}]}}}),
    )
    return gateway


def _invoke(*args):
    return runner.invoke(app, ["--url", BASE_URL, *args])


def test_help():
    result = runner.invoke(app, ["report", "--help"])
    assert result.exit_code == 0
    assert "Collect a usage report" in result.stdout


def test_orchestrators_prints_json(cli_gateway):
    result = _invoke("orchestrators")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [{"name": "yorc", "href": "x"}]
    assert cli_gateway.logins == 1
    assert len(cli_gateway.requests_to("POST", "/logout")) == 1


def test_collectors_prints_json(cli_gateway):
    result = _invoke("collectors", "yorc")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [{"id": "heappe", "origin": "heappe-plugin"}]


def test_queries_filters_by_collector(cli_gateway):
    cli_gateway.on(
        "GET",
        f"{PREFIX}/orchestrators/yorc/infra_usage",
        (200, {"json": {"data": {"tasks": [
            {"href": f"{PREFIX}/orchestrators/{QUERY_ID}"},
            {"href": f"{PREFIX}/orchestrators/yorc/infra_usage/slurm/tasks/q2"},
        ]}}}),
    )

    result = _invoke("queries", "yorc", "--collector", "heappe")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [QUERY_ID]


def test_status_and_delete(cli_gateway):
    cli_gateway.on("GET", QUERY_PATH, (200, {"json": {"data": {"status": "DONE", "result_set": {"cpu": 42}}}}))
    cli_gateway.on("DELETE", QUERY_PATH, (200, {}))

    status_result = _invoke("status", QUERY_ID)
    delete_result = _invoke("delete", QUERY_ID)

    assert status_result.exit_code == 0
    assert json.loads(status_result.stdout) == {"status": "DONE", "result_set": {"cpu": 42}}
    assert delete_result.exit_code == 0
    assert len(cli_gateway.requests_to("DELETE", QUERY_PATH)) == 1


def test_report_runs_full_lifecycle(cli_gateway):
    cli_gateway.on("POST", SUBMIT_PATH, (201, {"headers": {"Location": f"{PREFIX}/orchestrators/{QUERY_ID}"}}))
    cli_gateway.on(
        "GET",
        QUERY_PATH,
        (200, {"json": {"data": {"status": "INITIAL"}}}),
        (200, {"json": {"data": {"status": "RUNNING"}}}),
        (200, {"json": {"data": {"status": "DONE", "result_set": {"cpu": 42}}}}),
    )
    cli_gateway.on("DELETE", QUERY_PATH, (200, {}))

    result = _invoke(
        "report",
        "--orchestrator", "yorc",
        "--type", "heappe",
        "--location", "myLoc",
        "--query", "start=2019-09-01",
        "--query", "end=2019-11-27",
        "--query", "start=2019-10-01",
        "--interval", "0.001",
    )

    assert result.exit_code == 0, _combined_output(result)
    assert json.loads(result.stdout) == {"cpu": 42}
    [submit] = cli_gateway.requests_to("POST", SUBMIT_PATH)
    assert submit.url.params["start"] == "2019-10-01"
    assert submit.url.params["end"] == "2019-11-27"
    assert len(cli_gateway.requests_to("GET", QUERY_PATH)) == 3
    assert len(cli_gateway.requests_to("DELETE", QUERY_PATH)) == 1


def test_report_failed_collection_exits_with_error(cli_gateway):
    cli_gateway.on("POST", SUBMIT_PATH, (201, {"headers": {"Location": f"{PREFIX}/orchestrators/{QUERY_ID}"}}))
    cli_gateway.on("GET", QUERY_PATH, (200, {"json": {"data": {"status": "FAILED"}}}))
    cli_gateway.on("DELETE", QUERY_PATH, (200, {}))

    result = _invoke(
        "report", "--orchestrator", "yorc", "--type", "heappe", "--location", "myLoc", "--interval", "0.001",
    )

    assert result.exit_code == 1
    assert "FAILED" in _combined_output(result)
    assert len(cli_gateway.requests_to("DELETE", QUERY_PATH)) == 1


def test_report_unknown_orchestrator(cli_gateway):
    result = _invoke("report", "--orchestrator", "nope", "--type", "heappe", "--location", "myLoc")

    assert result.exit_code == 1
    assert "No orchestrator nope found" in _combined_output(result)
    assert cli_gateway.requests_to("POST", SUBMIT_PATH) == []


def test_report_unknown_collector(cli_gateway):
    result = _invoke("report", "--orchestrator", "yorc", "--type", "openstack", "--location", "myLoc")

    assert result.exit_code == 1
    assert "Found no collector for openstack" in _combined_output(result)


def test_report_rejects_malformed_query_parameter(cli_gateway):
    result = _invoke(
        "report", "--orchestrator", "yorc", "--type", "heappe", "--location", "myLoc", "--query", "start",
    )

    assert result.exit_code != 0
    assert cli_gateway.requests == []


def test_login_failure_exits_with_error(cli_gateway):
    cli_gateway.login_status = 401

    result = _invoke("orchestrators")

    assert result.exit_code == 1
    assert "Bad credentials" in _combined_output(result)


def test_https_without_ca_file_is_refused(cli_gateway):
    result = runner.invoke(app, ["--url", "https://gw.example.com", "orchestrators"])

    assert result.exit_code == 1
    assert "certificate" in _combined_output(result)


def test_config_file_is_used(cli_gateway, tmp_path):
    config_file = tmp_path / "custom.yaml"
    config_file.write_text(f"gateway:\n  url: {BASE_URL}\n  user: operator\n")

    result = runner.invoke(app, ["--config", str(config_file), "orchestrators"])

    assert result.exit_code == 0
    [login] = cli_gateway.requests_to("POST", "/login")
    assert b"username=operator" in login.content


def test_parse_query_params_last_value_wins():
    assert _parse_query_params(["a=1", "b=x=y", "a=2"]) == {"a": "2", "b": "x=y"}
    assert _parse_query_params(None) == {}


def test_report_gives_up_after_max_attempts(cli_gateway):
    cli_gateway.on("POST", SUBMIT_PATH, (201, {"headers": {"Location": f"{PREFIX}/orchestrators/{QUERY_ID}"}}))
    cli_gateway.on("GET", QUERY_PATH, (200, {"json": {"data": {"status": "RUNNING"}}}))

    result = _invoke(
        "report", "--orchestrator", "yorc", "--type", "heappe", "--location", "myLoc",
        "--interval", "0.001", "--max-attempts", "2",
    )

    assert result.exit_code == 1
    assert len(cli_gateway.requests_to("GET", QUERY_PATH)) == 2
    assert cli_gateway.requests_to("DELETE", QUERY_PATH) == []
    assert len(cli_gateway.requests_to("POST", "/logout")) == 1
