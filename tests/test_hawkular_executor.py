from __future__ import annotations

import base64
import json

import anyio
import httpx
import pytest

from hawkular_datasource.adapters.api import (
    QueryCancelledError,
    RemoteStatusError,
    ResponseDecodeError,
    TransportError,
)
from hawkular_datasource.adapters.tsdb.hawkular import TENANT_HEADER, HawkularClient, HawkularExecutor
from hawkular_datasource.adapters.tsdb.query import QueryValidationError
from hawkular_datasource.config import ConfigurationError, DataSourceSettings
from hawkular_datasource.core.context import QueryContext
from hawkular_datasource.core.timerange import TimeRange
from hawkular_datasource.core.tsdb import TsdbQuery

pytestmark = pytest.mark.anyio

SAMPLE_RESPONSE = [{"id": "m1", "data": [{"timestamp": 1000, "value": 2.5}]}]


def _context(**kwargs) -> QueryContext:
    return QueryContext(time_range=TimeRange.from_epoch(1000, 2000), **kwargs)


def _ids_query(ref_id: str = "A", target: str = "m1", **extra) -> TsdbQuery:
    return TsdbQuery(ref_id=ref_id, model={"refId": ref_id, "queryBy": "ids", "target": target, "type": "gauge", **extra})


class Recorder:
    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responses:
            return self._responses.pop(0)
        return httpx.Response(200, json=SAMPLE_RESPONSE)


async def test_execute_posts_raw_query(make_executor):
    recorder = Recorder()
    executor = make_executor(recorder)

    await executor.execute([_ids_query(target="metric-1")], _context())

    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://hawkular.test:8080/hawkular/metrics/gauges/raw/query"
    assert request.headers[TENANT_HEADER] == "acme"
    assert request.headers["Content-Type"] == "application/json"
    expected_auth = base64.b64encode(b"jdoe:secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected_auth}"
    assert json.loads(request.content) == {"start": 1000, "end": 2000, "order": "ASC", "ids": ["metric-1"]}


async def test_execute_by_tags_sends_tag_filter(make_executor):
    recorder = Recorder()
    executor = make_executor(recorder)
    query = TsdbQuery(
        ref_id="A",
        model={"queryBy": "tags", "type": "counter", "tags": [{"name": "heap", "value": "used"}]},
    )

    await executor.execute([query], _context())

    request = recorder.requests[0]
    assert request.url.path == "/hawkular/metrics/counters/raw/query"
    body = json.loads(request.content)
    assert body["tags"] == "heap:used"
    assert "ids" not in body


async def test_execute_without_basic_auth_sends_no_authorization(make_executor):
    datasource = DataSourceSettings.from_mapping(
        {"name": "open", "url": "http://hawkular.test/hawkular/metrics", "jsonData": {"tenant": "acme"}}
    )
    recorder = Recorder()
    executor = make_executor(recorder, datasource=datasource)

    await executor.execute([_ids_query()], _context())

    assert "Authorization" not in recorder.requests[0].headers


async def test_execute_maps_series(make_executor):
    executor = make_executor(Recorder())

    batch = await executor.execute([_ids_query()], _context())

    result = batch.get("A")
    assert result is not None
    assert [series.name for series in result.series] == ["m1"]
    point = result.series[0].points[0]
    assert point.timestamp == 1000
    assert point.value == 2.5


async def test_execute_keys_results_by_ref_id(make_executor):
    recorder = Recorder(
        httpx.Response(200, json=[{"id": "first", "data": [{"timestamp": 1, "value": 1}]}]),
        httpx.Response(200, json=[{"id": "second", "data": [{"timestamp": 1, "value": 2}]}]),
    )
    executor = make_executor(recorder)

    batch = await executor.execute([_ids_query("A", "first"), _ids_query("B", "second")], _context())

    assert set(batch.query_results) == {"A", "B"}
    assert batch.get("A").series[0].name == "first"
    assert batch.get("B").series[0].name == "second"


async def test_execute_accumulates_queries_sharing_ref_id(make_executor):
    recorder = Recorder(
        httpx.Response(200, json=[{"id": "first", "data": []}]),
        httpx.Response(200, json=[{"id": "second", "data": []}]),
    )
    executor = make_executor(recorder)

    batch = await executor.execute([_ids_query("A", "first"), _ids_query("A", "second")], _context())

    assert [series.name for series in batch.get("A").series] == ["first", "second"]
    assert len(batch.get("A").meta["requests"]) == 2


async def test_execute_applies_series_aggregation(make_executor):
    recorder = Recorder(
        httpx.Response(
            200,
            json=[
                {"id": "a", "data": [{"timestamp": 1, "value": 1.0}]},
                {"id": "b", "data": [{"timestamp": 1, "value": 3.0}]},
            ],
        )
    )
    executor = make_executor(recorder)

    batch = await executor.execute([_ids_query(seriesAggFn="sum")], _context())

    series = batch.get("A").series
    assert [item.name for item in series] == ["sum"]
    assert series[0].points[0].value == 4.0


async def test_no_content_yields_empty_result(make_executor):
    executor = make_executor(Recorder(httpx.Response(204)))

    batch = await executor.execute([_ids_query()], _context())

    assert batch.get("A").series == []


async def test_remote_error_status_aborts_batch(make_executor):
    recorder = Recorder(httpx.Response(500, text="boom"))
    executor = make_executor(recorder)

    with pytest.raises(RemoteStatusError) as excinfo:
        await executor.execute([_ids_query("A"), _ids_query("B")], _context())

    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "boom"
    # The batch stops at the first failure.
    assert len(recorder.requests) == 1


async def test_malformed_json_raises_decode_error(make_executor):
    executor = make_executor(Recorder(httpx.Response(200, content=b"[{not json", headers={"Content-Type": "application/json"})))

    with pytest.raises(ResponseDecodeError):
        await executor.execute([_ids_query()], _context())


async def test_unexpected_payload_shape_raises_decode_error(make_executor):
    executor = make_executor(Recorder(httpx.Response(200, json={"id": "m1"})))

    with pytest.raises(ResponseDecodeError):
        await executor.execute([_ids_query()], _context())


async def test_transport_failure_raises_transport_error(make_executor):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    executor = make_executor(handler)

    with pytest.raises(TransportError):
        await executor.execute([_ids_query()], _context())


async def test_invalid_query_aborts_before_any_request(make_executor):
    recorder = Recorder()
    executor = make_executor(recorder)
    broken = TsdbQuery(ref_id="B", model={"queryBy": "tags", "tags": []})

    with pytest.raises(QueryValidationError):
        await executor.execute([_ids_query("A"), broken], _context())

    assert recorder.requests == []


async def test_invalid_time_range_is_a_validation_error(make_executor):
    recorder = Recorder()
    executor = make_executor(recorder)
    context = QueryContext(time_range=TimeRange(from_raw="yesterday", to_raw="now"))

    with pytest.raises(QueryValidationError):
        await executor.execute([_ids_query()], context)

    assert recorder.requests == []


async def test_deadline_aborts_slow_request(make_executor):
    async def handler(request: httpx.Request) -> httpx.Response:
        await anyio.sleep(30)
        return httpx.Response(200, json=SAMPLE_RESPONSE)

    executor = make_executor(handler)

    with anyio.fail_after(5):
        with pytest.raises(QueryCancelledError):
            await executor.execute([_ids_query()], _context(deadline=0.05))


async def test_cancelling_caller_aborts_inflight_request(make_executor):
    started = anyio.Event()
    outcome: dict[str, bool] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await anyio.sleep(30)
        return httpx.Response(200, json=SAMPLE_RESPONSE)

    executor = make_executor(handler)

    async def run() -> None:
        try:
            await executor.execute([_ids_query()], _context())
        except anyio.get_cancelled_exc_class():
            outcome["cancelled"] = True
            raise
        outcome["completed"] = True

    with anyio.fail_after(5):
        async with anyio.create_task_group() as group:
            group.start_soon(run)
            await started.wait()
            group.cancel_scope.cancel()

    assert outcome == {"cancelled": True}


async def test_verify_reports_started_service(make_executor):
    recorder = Recorder(httpx.Response(200, json={"MetricsService": "STARTED", "Implementation-Version": "0.30.0"}))
    executor = make_executor(recorder)

    result = await executor.verify()

    assert result.success is True
    assert result.details["version"] == "0.30.0"
    assert recorder.requests[0].url.path == "/hawkular/metrics/status"
    assert recorder.requests[0].method == "GET"


async def test_verify_reports_service_not_started(make_executor):
    executor = make_executor(Recorder(httpx.Response(200, json={"MetricsService": "STARTING"})))

    result = await executor.verify()

    assert result.success is False
    assert "STARTING" in result.message


async def test_verify_failure_does_not_raise(make_executor):
    executor = make_executor(Recorder(httpx.Response(503, text="unavailable")))

    result = await executor.verify()

    assert result.success is False
    assert "verification failed" in result.message.lower()


def test_client_rejects_settings_without_tenant():
    settings = DataSourceSettings(name="bad", url="http://hawkular.test", json_data={})

    with pytest.raises(ConfigurationError):
        HawkularClient(settings)


def test_executor_builds_default_client(settings):
    executor = HawkularExecutor(settings=settings)

    assert isinstance(executor.client, HawkularClient)
    assert executor.source_id == "hawkular-test"


async def test_executor_uses_injected_client(settings):
    recorder = Recorder(
        httpx.Response(200, json=SAMPLE_RESPONSE),
        httpx.Response(200, json={"MetricsService": "STARTED"}),
    )
    client = HawkularClient(settings, transport=httpx.MockTransport(recorder))
    executor = HawkularExecutor(settings=settings, client=client)

    batch = await executor.execute([_ids_query()], _context())
    result = await executor.verify()

    assert executor.client is client
    assert batch.get("A").series[0].name == "m1"
    assert result.success is True
    assert [request.method for request in recorder.requests] == ["POST", "GET"]
