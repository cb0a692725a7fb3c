"""
Hawkular Metrics client and query executor.

Every panel query becomes one ``POST {base}/{type}s/raw/query`` carrying the
shared time range, ascending order and either an ``ids`` list or a ``tags``
filter. Requests are scoped with the ``Hawkular-Tenant`` header.

Reference: https://www.hawkular.org/docs/rest/rest-metrics.html
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence

import anyio
import httpx

from ...config import DataSourceSettings
from ...core.context import QueryContext
from ...core.logging import bind_extra, get_logger, log_progress
from ...core.tsdb import BatchResult, TimeSeries, TsdbQuery
from ..api.base import APIError, BaseAPIClient, QueryCancelledError, ResponseDecodeError
from ..base import DataSourceAdapter, VerificationResult
from .query import HawkularQuery, QueryValidationError
from .series import aggregate_series, parse_series

TENANT_HEADER = "Hawkular-Tenant"
STATUS_PATH = "/status"
_STATUS_ATTEMPTS = 3


class HawkularClient(BaseAPIClient):
    """Minimal client for the Hawkular Metrics REST API."""

    def __init__(
        self,
        settings: DataSourceSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings.validate()
        headers: MutableMapping[str, str] = {
            "Accept": "application/json",
            TENANT_HEADER: settings.tenant or "",
        }
        auth = httpx.BasicAuth(settings.basic_auth_user or "", settings.basic_auth_password or "") if settings.basic_auth else None
        super().__init__(
            base_url=settings.url,
            timeout=settings.timeout,
            default_headers=headers,
            auth=auth,
            transport=transport,
        )
        self.settings = settings

    async def raw_query(self, path: str, body: Mapping[str, Any]) -> List[TimeSeries]:
        """Run a raw data query; ``204 No Content`` yields no series."""

        payload = await self._post_json(path, json_body=body, allow_empty=True)
        return parse_series(payload)

    async def status(self) -> Mapping[str, Any]:
        payload = await self._get_json(STATUS_PATH, attempts=_STATUS_ATTEMPTS)
        if not isinstance(payload, Mapping):
            raise ResponseDecodeError("Unexpected payload from Hawkular status endpoint.")
        return payload


@dataclass(slots=True)
class HawkularExecutor(DataSourceAdapter):
    """
    Query executor for one configured Hawkular data source.

    Queries of a batch run one after the other. Results accumulate per
    reference id, so two queries sharing a ``refId`` contribute series to the
    same :class:`~hawkular_datasource.core.tsdb.QueryResult`. The first failure
    aborts the batch and no partial result is returned.
    """

    settings: DataSourceSettings
    client: Optional[HawkularClient] = None
    logger: LoggerAdapter = field(init=False, repr=False)
    _http: HawkularClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._http = self.client if self.client is not None else HawkularClient(self.settings)
        self.client = self._http
        self.logger = get_logger(self.__class__.__name__, extra={"datasource": self.settings.name})

    @property
    def source_id(self) -> str:
        return self.settings.name

    async def execute(self, queries: Sequence[TsdbQuery], context: QueryContext) -> BatchResult:
        # Validate the whole batch before the first request goes out.
        typed = [HawkularQuery.from_model(query.ref_id, query.model) for query in queries]
        try:
            start_ms, end_ms = context.time_range.resolve()
        except ValueError as exc:
            raise QueryValidationError(f"Invalid time range: {exc}") from exc

        logger = context.get_logger(self.__class__.__name__, extra={"datasource": self.settings.name})
        if context.deadline is None:
            return await self._run(typed, start_ms, end_ms, logger)
        try:
            with anyio.fail_after(context.deadline):
                return await self._run(typed, start_ms, end_ms, logger)
        except TimeoutError as exc:
            logger.error("Batch deadline exceeded", extra={"duration": context.deadline})
            raise QueryCancelledError(f"Query batch exceeded its deadline of {context.deadline}s.") from exc

    async def _run(
        self,
        queries: Sequence[HawkularQuery],
        start_ms: int,
        end_ms: int,
        logger: LoggerAdapter,
    ) -> BatchResult:
        batch = BatchResult()
        for query in queries:
            query_logger = bind_extra(
                logger,
                ref_id=query.ref_id,
                metric_type=query.metric_type.value,
                query_by=query.query_by.value,
            )
            body = query.build_body(start_ms, end_ms)
            query_logger.debug("Hawkular metric", extra={"metric": query.describe()})
            log_progress(query_logger, "Running Hawkular query", phase="query", status="started", extra={"request": body})
            try:
                series = await self._http.raw_query(query.path, body)
            except APIError as exc:
                log_progress(query_logger, "Hawkular query failed", phase="query", status="failed", extra={"error": str(exc)}, level=logging.ERROR)
                raise

            series = aggregate_series(series, query.series_agg_fn)
            result = batch.result_for(query.ref_id)
            result.extend(series)
            requests: List[Dict[str, Any]] = result.meta.setdefault("requests", [])
            requests.append({"path": query.path, "body": body})
            log_progress(
                query_logger,
                "Hawkular query finished",
                phase="query",
                status="done",
                extra={"series": len(series), "points": sum(len(item.points) for item in series)},
            )
        return batch

    async def verify(self) -> VerificationResult:
        self.logger.info("Verifying data source", extra={"url": self.settings.url})
        try:
            status = await self._http.status()
        except APIError as exc:
            self.logger.warning("Verification failed", extra={"error": str(exc)})
            return VerificationResult(
                success=False,
                message=f"Hawkular Metrics verification failed: {exc}",
                details={"datasource": self.settings.name, "url": self.settings.url},
            )

        service_state = status.get("MetricsService")
        details = {
            "datasource": self.settings.name,
            "tenant": self.settings.tenant,
            "metrics_service": service_state,
            "version": status.get("Implementation-Version"),
        }
        if service_state is not None and service_state != "STARTED":
            return VerificationResult(
                success=False,
                message=f"Hawkular Metrics reachable but the metrics service is {service_state}.",
                details=details,
            )
        return VerificationResult(success=True, message="Hawkular Metrics reachable.", details=details)


__all__ = ["HawkularClient", "HawkularExecutor", "TENANT_HEADER"]
