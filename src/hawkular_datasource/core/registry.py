"""
Executor factories and the data source catalogue.

Two small registries wire a host to its data sources:

* :class:`ExecutorRegistry` maps a data source *type* (``hawkular-datasource``)
  to the factory that builds an executor from :class:`DataSourceSettings`.
  Nothing registers itself at import time; the composition root registers
  factories explicitly.
* :class:`DataSourceCatalogue` holds the configured data source *instances*,
  loaded from a YAML list of host records.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, MutableMapping, Optional

import yaml

from ..adapters.base import AdapterError
from ..config import ConfigurationError, DataSourceSettings, SecretsBundle
from .tsdb import TsdbExecutor

ExecutorFactory = Callable[[DataSourceSettings], TsdbExecutor]

_CREDENTIAL_KEYS = (("basic_auth_user", "basicAuthUser"), ("basic_auth_password", "basicAuthPassword"))


class CatalogueLoadError(AdapterError):
    """Raised when a catalogue YAML file cannot be parsed or validated."""


class ExecutorRegistry:
    """Mapping of data source type names to executor factories."""

    def __init__(self) -> None:
        self._factories: MutableMapping[str, ExecutorFactory] = {}

    def register(self, type_name: str, factory: ExecutorFactory) -> None:
        """Register or overwrite the factory for ``type_name``."""

        if not type_name:
            raise ValueError("Executor type name cannot be empty.")
        self._factories[type_name] = factory

    def types(self) -> List[str]:
        return sorted(self._factories)

    def create(self, settings: DataSourceSettings) -> TsdbExecutor:
        """Build an executor for ``settings`` or raise an informative error."""

        factory = self._factories.get(settings.type)
        if factory is None:
            known = ", ".join(self.types()) or "none"
            raise AdapterError(f"No executor registered for data source type '{settings.type}' (known: {known}).")
        return factory(settings)


class DataSourceCatalogue:
    """In-memory catalogue of configured data sources keyed by name."""

    def __init__(self) -> None:
        self._entries: MutableMapping[str, DataSourceSettings] = {}

    def add(self, settings: DataSourceSettings) -> None:
        if settings.name in self._entries:
            raise CatalogueLoadError(f"Duplicate data source name '{settings.name}'.")
        self._entries[settings.name] = settings

    def get(self, name: str) -> Optional[DataSourceSettings]:
        return self._entries.get(name)

    def require(self, name: str) -> DataSourceSettings:
        settings = self.get(name)
        if settings is None:
            raise KeyError(f"Data source '{name}' is not configured.")
        return settings

    def list(self) -> List[DataSourceSettings]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[DataSourceSettings]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_records(cls, records: List[Mapping[str, Any]], *, secrets: Optional[SecretsBundle] = None, origin: str = "<memory>") -> "DataSourceCatalogue":
        """Build a catalogue from host records, filling credentials from ``secrets``."""

        catalogue = cls()
        for index, entry in enumerate(records):
            if not isinstance(entry, Mapping):
                raise CatalogueLoadError(f"Invalid entry #{index} in '{origin}': expected mapping, got {type(entry).__name__}.")
            record = _merge_credentials(entry, secrets)
            try:
                settings = DataSourceSettings.from_mapping(record)
            except ConfigurationError as exc:
                raise CatalogueLoadError(f"Invalid entry #{index} in '{origin}': {exc}") from exc
            catalogue.add(settings)
        return catalogue

    @classmethod
    def from_yaml(cls, path: Path | str, *, secrets: Optional[SecretsBundle] = None) -> "DataSourceCatalogue":
        """Load data sources from a YAML list of records."""

        location = Path(path)
        if not location.exists():
            raise CatalogueLoadError(f"Catalogue file '{location}' does not exist.")

        try:
            with location.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise CatalogueLoadError(f"Failed to parse '{location}': {exc}") from exc

        if payload is None:
            payload = []
        if not isinstance(payload, list):
            raise CatalogueLoadError(f"Catalogue file '{location}' must contain a list of data sources.")
        return cls.from_records(payload, secrets=secrets, origin=str(location))


def _merge_credentials(entry: Mapping[str, Any], secrets: Optional[SecretsBundle]) -> Dict[str, Any]:
    record = dict(entry)
    if secrets is None:
        return record
    credentials = secrets.credentials_for(str(record.get("name", "")))
    for key, camel in _CREDENTIAL_KEYS:
        if record.get(key) is None and record.get(camel) is None and credentials.get(key) is not None:
            record[key] = credentials[key]
    return record
