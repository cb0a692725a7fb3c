"""
Data source service facade.

The facade is the composition root for hosts that are not the visualization
platform itself (the CLI, scripts, tests): it resolves a configured data
source from the catalogue, builds its executor through the registry, and
bridges the async executor API to synchronous callers with :func:`anyio.run`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from logging import LoggerAdapter
from typing import Any, Dict, List, Mapping, Optional, Sequence

import anyio

from ..adapters import AdapterError, VerificationResult
from ..adapters.tsdb import HawkularExecutor
from ..config import DataSourceSettings
from ..core import DataSourceCatalogue, ExecutorRegistry, QueryContext, TsdbExecutor, TsdbQuery, get_logger
from ..core.tsdb import BatchResult

HAWKULAR_TYPE = "hawkular-datasource"
HAWKULAR_ALIASES = ("hawkular",)


def build_default_registry() -> ExecutorRegistry:
    """Registry with the Hawkular executor under its plugin id and short alias."""

    registry = ExecutorRegistry()
    registry.register(HAWKULAR_TYPE, HawkularExecutor)
    for alias in HAWKULAR_ALIASES:
        registry.register(alias, HawkularExecutor)
    return registry


def run_batch(executor: TsdbExecutor, queries: Sequence[TsdbQuery], context: QueryContext) -> BatchResult:
    """Run ``executor.execute`` to completion from synchronous code."""

    return anyio.run(partial(executor.execute, list(queries), context))


@dataclass(slots=True)
class DataSourceServices:
    """High-level facade used by the CLI and automation scripts."""

    catalogue: DataSourceCatalogue
    registry: ExecutorRegistry = field(default_factory=build_default_registry)
    logger: LoggerAdapter = field(init=False, repr=False)
    _executors: Dict[str, TsdbExecutor] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)

    def list_datasources(self) -> List[DataSourceSettings]:
        return self.catalogue.list()

    def resolve(self, name: str) -> DataSourceSettings:
        """Fetch settings or raise a descriptive error."""

        settings = self.catalogue.get(name)
        if settings is None:
            raise AdapterError(f"Data source '{name}' is not configured.")
        return settings

    def executor_for(self, name: str) -> TsdbExecutor:
        """Return the executor for ``name``, building it on first use."""

        executor = self._executors.get(name)
        if executor is None:
            settings = self.resolve(name)
            executor = self.registry.create(settings)
            self._executors[name] = executor
            self.logger.debug("Executor created", extra={"datasource": name, "executor": type(executor).__name__})
        return executor

    def run_queries(
        self,
        name: str,
        models: Sequence[Mapping[str, Any]],
        context: Optional[QueryContext] = None,
    ) -> BatchResult:
        """
        Execute panel models against a data source.

        Parameters
        ----------
        name:
            Catalogue name of the data source.
        models:
            Raw panel query models; each one's ``refId`` keys its result.
        context:
            Shared time range and deadline. Defaults to the last hour.
        """

        executor = self.executor_for(name)
        queries = [TsdbQuery.from_panel(model) for model in models]
        resolved_context = context or QueryContext()
        self.logger.info("Running query batch", extra={"datasource": name, "queries": len(queries)})
        return run_batch(executor, queries, resolved_context)

    def verify(self, name: str) -> VerificationResult:
        """Run the executor's connectivity check when it offers one."""

        settings = self.resolve(name)
        executor = self.executor_for(name)
        verify = getattr(executor, "verify", None)
        if verify is None:
            return VerificationResult(
                success=True,
                message=f"Data source '{name}' is configured (type {settings.type}); executor has no connectivity check.",
                details={"type": settings.type},
            )
        return anyio.run(verify)
