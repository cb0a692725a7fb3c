"""
Typer application for inspecting and querying configured Hawkular data sources.

The CLI plays the host's role: it loads the data source catalogue, builds the
executor through the registry and runs one panel query per invocation.
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from ..adapters import AdapterError
from ..config import DataSourceSettings, load_secrets
from ..core import CatalogueLoadError, DataSourceCatalogue, QueryContext, TimeRange, configure_logging
from ..services import DataSourceServices

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Query Hawkular Metrics the way a dashboard panel does.\n\n"
        "Command groups:\n"
        "- datasources: list, describe and verify configured data sources.\n"
        "- query: run a raw query by metric id or tag filter and print the series."
    ),
)
datasources_app = typer.Typer(help="Inspect and verify configured data sources.")
app.add_typer(datasources_app, name="datasources")


def _load_catalogue(catalogue_file: Optional[Path]) -> DataSourceCatalogue:
    secrets = load_secrets(strict=False)
    if catalogue_file:
        return DataSourceCatalogue.from_yaml(catalogue_file, secrets=secrets)
    datasources_pkg = "hawkular_datasource.resources.datasources"
    with resources.as_file(resources.files(datasources_pkg) / "default.yaml") as resolved:
        return DataSourceCatalogue.from_yaml(resolved, secrets=secrets)


def _render_settings(settings: DataSourceSettings) -> Dict[str, Any]:
    return {
        "name": settings.name,
        "type": settings.type,
        "url": settings.url,
        "tenant": settings.tenant,
        "basic_auth": settings.basic_auth,
        "basic_auth_user": settings.basic_auth_user,
        "timeout": settings.timeout,
    }


def _parse_tags(values: Optional[List[str]]) -> List[Dict[str, str]]:
    tags: List[Dict[str, str]] = []
    for entry in values or []:
        if ":" not in entry:
            raise typer.BadParameter(f"Tag '{entry}' must use name:value format.")
        name, value = entry.split(":", 1)
        name = name.strip()
        if not name:
            raise typer.BadParameter(f"Tag '{entry}' is missing a name.")
        tags.append({"name": name, "value": value.strip()})
    return tags


@app.callback(invoke_without_command=False)
def main(
    ctx: typer.Context,
    catalogue_file: Optional[Path] = typer.Option(
        None,
        "--catalogue",
        "-c",
        help="Data source catalogue YAML file. Defaults to the bundled sample catalogue.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)."),
) -> None:
    """
    Load the catalogue and store the service facade in Typer's state.
    """

    if log_level:
        configure_logging(log_level, force=True)
    try:
        catalogue = _load_catalogue(catalogue_file)
    except CatalogueLoadError as exc:
        typer.echo(f"Failed to load catalogue: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    state = ctx.ensure_object(dict)
    state["services"] = DataSourceServices(catalogue=catalogue)


def _require_services(ctx: typer.Context) -> DataSourceServices:
    state = ctx.ensure_object(dict)
    services = state.get("services")
    if not isinstance(services, DataSourceServices):
        raise typer.Exit(code=2)
    return services


@datasources_app.command("list")
def datasources_list(ctx: typer.Context) -> None:
    """List configured data sources."""

    services = _require_services(ctx)
    entries = services.list_datasources()
    if not entries:
        typer.echo("No data sources configured.")
        raise typer.Exit(code=0)

    header = f"{'Name':<20} {'Type':<20} {'Tenant':<16} URL"
    typer.echo(header)
    typer.echo("-" * len(header))
    for entry in entries:
        typer.echo(f"{entry.name:<20} {entry.type:<20} {entry.tenant or '-':<16} {entry.url}")


@datasources_app.command("describe")
def datasources_describe(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the data source."),
    output_json: bool = typer.Option(False, "--json", help="Emit settings in JSON format."),
) -> None:
    """Show the configuration of a data source (passwords are never printed)."""

    services = _require_services(ctx)
    try:
        settings = services.resolve(name)
    except AdapterError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    payload = _render_settings(settings)
    if output_json:
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    for key, value in payload.items():
        typer.echo(f"{key}: {value if value is not None else 'N/A'}")


@datasources_app.command("verify")
def datasources_verify(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the data source."),
) -> None:
    """Check that the remote store answers on its status endpoint."""

    services = _require_services(ctx)
    try:
        result = services.verify(name)
    except AdapterError as exc:
        typer.echo(f"Verification failed: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(result.message)
    if result.details:
        typer.echo(f"Details: {json.dumps(result.details, ensure_ascii=False)}")
    if not result.success:
        raise typer.Exit(code=1)


@app.command("query")
def query(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the data source."),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Metric id to fetch (queryBy=ids)."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag filter in name:value form (queryBy=tags). Can be repeated."),
    metric_type: str = typer.Option("gauge", "--type", help="Metric type: gauge, counter, availability or string."),
    rate: bool = typer.Option(False, "--rate", help="Fetch rate data instead of raw values."),
    series_agg: str = typer.Option("none", "--series-agg", help="Fold series with none, sum, avg, min or max."),
    time_from: str = typer.Option("now-1h", "--from", help="Range start: now-<n><unit>, epoch ms or ISO-8601."),
    time_to: str = typer.Option("now", "--to", help="Range end: now, now-<n><unit>, epoch ms or ISO-8601."),
    ref_id: str = typer.Option("A", "--ref-id", help="Reference id used to key the result."),
    deadline: Optional[float] = typer.Option(None, "--deadline", min=0.001, help="Abort the query after this many seconds."),
    output_json: bool = typer.Option(False, "--json", help="Emit the full batch result as JSON."),
) -> None:
    """Run one panel query and print the returned series."""

    services = _require_services(ctx)
    tags = _parse_tags(tag)
    if bool(target) == bool(tags):
        raise typer.BadParameter("Provide either --target or at least one --tag, not both.")

    model: Dict[str, Any] = {
        "refId": ref_id,
        "queryBy": "tags" if tags else "ids",
        "type": metric_type,
        "rate": rate,
        "seriesAggFn": series_agg,
    }
    if tags:
        model["tags"] = tags
    else:
        model["target"] = target

    context = QueryContext(time_range=TimeRange(from_raw=time_from, to_raw=time_to), deadline=deadline)
    try:
        batch = services.run_queries(name, [model], context)
    except AdapterError as exc:
        typer.echo(f"Query failed: {exc}", err=True)
        raise typer.Exit(code=1)

    if output_json:
        typer.echo(json.dumps(batch.to_dict(), ensure_ascii=False, indent=2))
        return

    result = batch.get(ref_id)
    if result is None or not result.series:
        typer.echo("No series returned.")
        return
    for series in result.series:
        last = series.points[-1].value if series.points else None
        typer.echo(f"{result.ref_id:<4} {series.name:<40} {len(series.points):>6} point(s)  last={last}")
