import typer
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional
from pydantic import ValidationError

from infrausage.cli.formatter import OutputFormatter, configure_logging
from infrausage.config.loader import load_config
from infrausage.core.client import InfraUsageClient
from infrausage.core.errors import InfraUsageError
from infrausage.core.models import PollingSettings, Settings

app = typer.Typer(name="infrausage", help="Infra usage collection client", rich_markup_mode=None)


def _parse_query_params(values: Optional[List[str]]) -> Dict[str, str]:
    """Turn repeated key=value options into a mapping; a repeated key keeps its last value."""
    params: Dict[str, str] = {}
    for value in values or []:
        key, sep, param_value = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected query parameter of the form key=value, got {value}")
        params[key] = param_value
    return params


def _settings(ctx: typer.Context) -> Settings:
    return ctx.ensure_object(Settings)


@contextmanager
def _logged_in_client(settings: Settings) -> Iterator[InfraUsageClient]:
    """Open a client, log in, and log out when done. Library errors exit with code 1."""
    try:
        with InfraUsageClient(settings.gateway, settings.polling) as client:
            client.login()
            try:
                yield client
            finally:
                try:
                    client.logout()
                except InfraUsageError as exc:
                    OutputFormatter.log(f"Logout failed: {exc}", severity="warning")
    except InfraUsageError as exc:
        OutputFormatter.log(f"Error: {exc}", severity="error")
        raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(None, "--url", help="Gateway URL (default http://localhost:8088)."),
    user: Optional[str] = typer.Option(None, "--user", help="User name."),
    password: Optional[str] = typer.Option(None, "--password", help="Password."),
    ca_file: Optional[str] = typer.Option(None, "--ca-file", help="Certificate authority file for HTTPS."),
    insecure: bool = typer.Option(False, "--insecure", help="Skip TLS certificate verification."),
    config: Path = typer.Option(Path("infrausage.yaml"), "--config", "-c", help="Path to the YAML config file."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Library log level."),
):
    """
    Query the infra usage collectors of an orchestration gateway.
    """
    try:
        config_data = load_config(config)
        settings = Settings.from_config(
            config_data,
            url=url,
            user=user,
            password=password,
            ca_file=ca_file,
            insecure=True if insecure else None,
        )
    except InfraUsageError as exc:
        OutputFormatter.log(f"Error: {exc}", severity="error")
        raise typer.Exit(code=1)
    except ValidationError as exc:
        OutputFormatter.log(f"Invalid configuration: {exc}", severity="error")
        raise typer.Exit(code=1)

    configure_logging(log_level or settings.logging.level)
    ctx.obj = settings


@app.command()
def orchestrators(ctx: typer.Context):
    """List the orchestrators configured on the gateway."""
    with _logged_in_client(_settings(ctx)) as client:
        OutputFormatter.print_data(client.orchestrators.list())


@app.command()
def collectors(
    ctx: typer.Context,
    orchestrator: str = typer.Argument(..., help="Orchestrator name."),
):
    """List the usage collectors of an orchestrator."""
    with _logged_in_client(_settings(ctx)) as client:
        OutputFormatter.print_data(client.collectors.list(orchestrator))


@app.command()
def queries(
    ctx: typer.Context,
    orchestrator: str = typer.Argument(..., help="Orchestrator name."),
    collector: str = typer.Option("", "--collector", help="Only list queries of this collector."),
):
    """List the ids of the usage queries known on an orchestrator."""
    with _logged_in_client(_settings(ctx)) as client:
        OutputFormatter.print_data(client.queries.list_query_ids(orchestrator, collector))


@app.command()
def status(
    ctx: typer.Context,
    query_id: str = typer.Argument(..., help="Query id returned on submission."),
):
    """Show the status and results of a usage query."""
    with _logged_in_client(_settings(ctx)) as client:
        OutputFormatter.print_data(client.queries.status(query_id))


@app.command()
def delete(
    ctx: typer.Context,
    query_id: str = typer.Argument(..., help="Query id returned on submission."),
):
    """Delete a usage query."""
    with _logged_in_client(_settings(ctx)) as client:
        client.queries.delete(query_id)
        OutputFormatter.log(f"Deleted query {query_id}", severity="success")


@app.command()
def report(
    ctx: typer.Context,
    orchestrator: str = typer.Option(..., "--orchestrator", help="Orchestrator name."),
    location_type: str = typer.Option(..., "--type", help="Type of location for which to get a usage report."),
    location: str = typer.Option(..., "--location", help="Name of location for which to get a usage report."),
    query: Optional[List[str]] = typer.Option(
        None,
        "--query",
        help="Query parameter of the form key=value (repeat to define several).",
    ),
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between two status polls."),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", help="Give up after this many polls."),
):
    """Collect a usage report on a location and print it."""
    settings = _settings(ctx)
    params = _parse_query_params(query)

    polling_data = settings.polling.model_dump()
    if interval is not None:
        polling_data["interval"] = interval
    if max_attempts is not None:
        polling_data["max_attempts"] = max_attempts
    try:
        polling = PollingSettings(**polling_data)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc))

    with _logged_in_client(settings.model_copy(update={"polling": polling})) as client:
        client.orchestrators.get(orchestrator)
        collector = client.collectors.get(orchestrator, location_type)

        OutputFormatter.log("Waiting for the end of collection query...")
        collection = client.collect_usage(orchestrator, collector.id, location, params)

        if collection.is_done:
            OutputFormatter.log(f"Collection for {orchestrator} location {location} {params}:", severity="success")
            OutputFormatter.print_data(collection.result_set)
        else:
            OutputFormatter.log(
                f"Failed to get collection for {orchestrator} location {location} {params}: status {collection.status}",
                severity="error",
            )

    if not collection.is_done:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
