from __future__ import annotations

import json
from unittest.mock import patch

from typer.testing import CliRunner

from hawkular_datasource.adapters import AdapterError, VerificationResult
from hawkular_datasource.cli.main import app
from hawkular_datasource.core.tsdb import BatchResult, TimePoint, TimeSeries


def invoke(cli_runner: CliRunner, args: list[str]):
    return cli_runner.invoke(app, args)


def _batch() -> BatchResult:
    batch = BatchResult()
    batch.result_for("A").extend([TimeSeries(name="heap.used", points=[TimePoint(1000, 1.0), TimePoint(2000, 3.5)])])
    return batch


def test_datasources_list(cli_runner, catalogue_file):
    result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "datasources", "list"])

    assert result.exit_code == 0
    assert "hawkular-local" in result.stdout
    assert "openshift-infra" in result.stdout


def test_datasources_list_empty(cli_runner, tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("[]\n", encoding="utf-8")

    result = invoke(cli_runner, ["--catalogue", str(empty), "datasources", "list"])

    assert result.exit_code == 0
    assert "No data sources configured." in result.stdout


def test_invalid_catalogue_exits_with_error(cli_runner, tmp_path):
    broken = tmp_path / "broken.yaml"
    broken.write_text("- name: missing-url\n", encoding="utf-8")

    result = invoke(cli_runner, ["--catalogue", str(broken), "datasources", "list"])

    assert result.exit_code == 1


def test_datasources_describe_json_hides_password(cli_runner, tmp_path):
    catalogue = tmp_path / "catalogue.yaml"
    catalogue.write_text(
        "- name: secured\n"
        "  url: http://hawkular.test/hawkular/metrics\n"
        "  basic_auth: true\n"
        "  basic_auth_user: ops\n"
        "  basic_auth_password: hunter2\n"
        "  tenant: acme\n",
        encoding="utf-8",
    )

    result = invoke(cli_runner, ["--catalogue", str(catalogue), "datasources", "describe", "secured", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["tenant"] == "acme"
    assert payload["basic_auth_user"] == "ops"
    assert "hunter2" not in result.stdout


def test_datasources_describe_unknown(cli_runner, catalogue_file):
    result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "datasources", "describe", "missing"])

    assert result.exit_code == 1


def test_datasources_verify_uses_stub(cli_runner, catalogue_file):
    with patch(
        "hawkular_datasource.cli.main.DataSourceServices.verify",
        return_value=VerificationResult(success=True, message="Hawkular Metrics reachable.", details={"version": "0.30.0"}),
    ):
        result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "datasources", "verify", "hawkular-local"])

    assert result.exit_code == 0
    assert "Hawkular Metrics reachable." in result.stdout
    assert "0.30.0" in result.stdout


def test_datasources_verify_reports_failure(cli_runner, catalogue_file):
    with patch(
        "hawkular_datasource.cli.main.DataSourceServices.verify",
        return_value=VerificationResult(success=False, message="connection refused", details={}),
    ):
        result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "datasources", "verify", "hawkular-local"])

    assert result.exit_code == 1
    assert "connection refused" in result.stdout


def test_query_by_target_prints_series(cli_runner, catalogue_file):
    with patch("hawkular_datasource.cli.main.DataSourceServices.run_queries", return_value=_batch()) as run_queries:
        result = invoke(
            cli_runner,
            ["--catalogue", str(catalogue_file), "query", "hawkular-local", "--target", "heap.used", "--from", "now-6h"],
        )

    assert result.exit_code == 0
    assert "heap.used" in result.stdout
    assert "last=3.5" in result.stdout
    name, models, context = run_queries.call_args.args
    assert name == "hawkular-local"
    assert models == [{"refId": "A", "queryBy": "ids", "type": "gauge", "rate": False, "seriesAggFn": "none", "target": "heap.used"}]
    assert context.time_range.from_raw == "now-6h"


def test_query_by_tags_builds_tag_model(cli_runner, catalogue_file):
    with patch("hawkular_datasource.cli.main.DataSourceServices.run_queries", return_value=_batch()) as run_queries:
        result = invoke(
            cli_runner,
            [
                "--catalogue",
                str(catalogue_file),
                "query",
                "hawkular-local",
                "--tag",
                "host:web-1",
                "--tag",
                "type:heap",
                "--type",
                "counter",
                "--json",
            ],
        )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["results"]["A"]["series"][0]["points"] == [[1.0, 1000], [3.5, 2000]]
    model = run_queries.call_args.args[1][0]
    assert model["queryBy"] == "tags"
    assert model["type"] == "counter"
    assert model["tags"] == [{"name": "host", "value": "web-1"}, {"name": "type", "value": "heap"}]


def test_query_requires_exactly_one_selector(cli_runner, catalogue_file):
    result = invoke(
        cli_runner,
        ["--catalogue", str(catalogue_file), "query", "hawkular-local", "--target", "heap", "--tag", "host:web-1"],
    )

    assert result.exit_code != 0


def test_query_rejects_malformed_tag(cli_runner, catalogue_file):
    result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "query", "hawkular-local", "--tag", "no-separator"])

    assert result.exit_code != 0


def test_query_failure_exits_with_error(cli_runner, catalogue_file):
    with patch("hawkular_datasource.cli.main.DataSourceServices.run_queries", side_effect=AdapterError("HTTP 500")):
        result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "query", "hawkular-local", "--target", "heap"])

    assert result.exit_code == 1


def test_query_with_no_series(cli_runner, catalogue_file):
    with patch("hawkular_datasource.cli.main.DataSourceServices.run_queries", return_value=BatchResult()):
        result = invoke(cli_runner, ["--catalogue", str(catalogue_file), "query", "hawkular-local", "--target", "heap"])

    assert result.exit_code == 0
    assert "No series returned." in result.stdout
