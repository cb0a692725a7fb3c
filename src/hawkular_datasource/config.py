"""
Data source settings and secret loading.

A data source record mirrors what a visualization host stores for a configured
data source: base URL, basic auth flag and credentials, and a free-form
``jsonData`` object holding the Hawkular ``tenant``. Records are accepted in
both the host's camelCase and snake_case spelling.

Credentials can live outside the catalogue in ``.secrets/secret.toml``. The
lookup order is:

1. Explicit ``HAWKULAR_SECRETS_PATH`` environment variable.
2. Project-relative ``.secrets/secret.toml`` (from CWD and the project root).
3. Project-relative ``.secrets/secrets.toml``.
4. Fallback to ``.secrets/secrets.example.toml`` for scaffolding values.

Each ``[datasources.<name>]`` table may define ``basic_auth_user`` and
``basic_auth_password``.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import httpx

from .adapters.base import AdapterError

DEFAULT_DATASOURCE_TYPE = "hawkular-datasource"
DEFAULT_TIMEOUT = 30.0


class ConfigurationError(AdapterError):
    """Raised when a data source record is incomplete or malformed."""


def _pick(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return None


def _optional_str(value: object | None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True, slots=True)
class DataSourceSettings:
    """
    Read-only configuration of one data source instance.

    Attributes
    ----------
    name:
        Unique name of the data source inside the host.
    type:
        Executor type used to look up the factory in the registry.
    url:
        Base URL of the Hawkular Metrics REST API, e.g.
        ``http://localhost:8080/hawkular/metrics``.
    basic_auth:
        Whether HTTP basic auth credentials are sent.
    basic_auth_user / basic_auth_password:
        Credentials used when ``basic_auth`` is enabled.
    json_data:
        Free-form options; ``tenant`` is mandatory for Hawkular.
    timeout:
        HTTP timeout in seconds.
    """

    name: str
    url: str
    type: str = DEFAULT_DATASOURCE_TYPE
    basic_auth: bool = False
    basic_auth_user: Optional[str] = None
    basic_auth_password: Optional[str] = field(default=None, repr=False)
    json_data: Mapping[str, Any] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT

    @property
    def tenant(self) -> Optional[str]:
        return _optional_str(self.json_data.get("tenant"))

    def validate(self) -> None:
        """Fail fast on records the executor cannot work with."""

        if not self.name:
            raise ConfigurationError("Data source name is required.")
        if not self.url:
            raise ConfigurationError(f"Data source '{self.name}' has no url.")
        try:
            parsed = httpx.URL(self.url)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Data source '{self.name}' has an invalid url '{self.url}': {exc}") from exc
        if parsed.scheme not in {"http", "https"} or not parsed.host:
            raise ConfigurationError(f"Data source '{self.name}' url must be an absolute http(s) URL, got '{self.url}'.")
        if not self.tenant:
            raise ConfigurationError(f"Data source '{self.name}' is missing the 'tenant' option in jsonData.")
        if self.basic_auth and not self.basic_auth_user:
            raise ConfigurationError(f"Data source '{self.name}' enables basic auth without a user.")
        if self.timeout <= 0:
            raise ConfigurationError(f"Data source '{self.name}' timeout must be positive.")

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "DataSourceSettings":
        """Build and validate settings from a host data source record."""

        if not isinstance(record, Mapping):
            raise ConfigurationError(f"Data source record must be a mapping, got {type(record).__name__}.")

        json_data = _pick(record, "jsonData", "json_data") or {}
        if not isinstance(json_data, Mapping):
            raise ConfigurationError("Data source jsonData must be a mapping.")
        json_data = dict(json_data)
        # Shorthand used in hand-written catalogues.
        if "tenant" in record and "tenant" not in json_data:
            json_data["tenant"] = record["tenant"]

        timeout = _pick(record, "timeout")
        try:
            resolved_timeout = float(timeout) if timeout is not None else DEFAULT_TIMEOUT
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Data source timeout must be a number, got {timeout!r}.") from exc

        settings = cls(
            name=str(_pick(record, "name") or ""),
            url=str(_pick(record, "url") or ""),
            type=str(_pick(record, "type") or DEFAULT_DATASOURCE_TYPE),
            basic_auth=bool(_pick(record, "basicAuth", "basic_auth") or False),
            basic_auth_user=_optional_str(_pick(record, "basicAuthUser", "basic_auth_user")),
            basic_auth_password=_optional_str(_pick(record, "basicAuthPassword", "basic_auth_password")),
            json_data=json_data,
            timeout=resolved_timeout,
        )
        settings.validate()
        return settings


@dataclass(slots=True)
class SecretsBundle:
    """Parsed secrets file."""

    source_path: Optional[Path]
    data: Dict[str, Any] = field(default_factory=dict)

    def credentials_for(self, datasource: str) -> Mapping[str, Any]:
        section = self.data.get("datasources")
        if not isinstance(section, Mapping):
            return {}
        entry = section.get(datasource)
        return entry if isinstance(entry, Mapping) else {}


def _discover_project_root() -> Optional[Path]:
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").is_file():
            return parent
    return None


def _candidate_paths() -> Iterable[Path]:
    env_override = os.getenv("HAWKULAR_SECRETS_PATH")
    if env_override:
        yield Path(env_override).expanduser()

    search_roots = [Path.cwd()]
    project_root = _discover_project_root()
    if project_root and project_root not in search_roots:
        search_roots.append(project_root)

    for base in search_roots:
        secrets_dir = base / ".secrets"
        for filename in ("secret.toml", "secrets.toml", "secrets.example.toml"):
            yield secrets_dir / filename


def load_secrets(strict: bool = False) -> SecretsBundle:
    """
    Load the first secrets file found in the lookup order.

    Parameters
    ----------
    strict:
        Raise ``FileNotFoundError`` when no file exists instead of returning an
        empty bundle.
    """

    for path in _candidate_paths():
        if path.is_file():
            with path.open("rb") as handle:
                try:
                    data = tomllib.load(handle)
                except tomllib.TOMLDecodeError as exc:
                    raise ConfigurationError(f"Failed to parse secrets file '{path}': {exc}") from exc
            return SecretsBundle(source_path=path, data=data)

    if strict:
        raise FileNotFoundError("No secrets file found. Configure HAWKULAR_SECRETS_PATH or .secrets/secret.toml.")

    return SecretsBundle(source_path=None)
