"""Command-line interface for interacting with an HMC."""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any

import typer

try:  # pragma: no cover - exercised in runtime environments
    from rich import box
    from rich.console import Console
    from rich.table import Table
except ImportError as exc:  # pragma: no cover - optional dependency guard
    raise RuntimeError(
        "The CLI requires Rich for table rendering. Install it via "
        "'pip install hmc-client' to enable this command."
    ) from exc

from .client import HMCClient
from .cli_schema import CLI_TABLE_VIEWS, TableView
from .exceptions import HmcError
from .resources.jobs import Job

app = typer.Typer(help="HMC Web Services API CLI.", no_args_is_help=True)

cpcs_app = typer.Typer(help="CPC operations.")
partitions_app = typer.Typer(help="Partition operations.")
adapters_app = typer.Typer(help="Adapter operations.")
vswitches_app = typer.Typer(help="Virtual switch operations.")
storage_groups_app = typer.Typer(help="Storage group operations.")
jobs_app = typer.Typer(help="Asynchronous job operations.")
app.add_typer(cpcs_app, name="cpcs")
app.add_typer(partitions_app, name="partitions")
app.add_typer(adapters_app, name="adapters")
app.add_typer(vswitches_app, name="vswitches")
app.add_typer(storage_groups_app, name="storage-groups")
app.add_typer(jobs_app, name="jobs")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests to stderr."),
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )


def _build_client(
    endpoint: str,
    username: str,
    password: str,
    skip_cert: bool,
    cert_path: Path | None,
    timeout: float,
    trace: bool,
) -> HMCClient:
    ca_cert = None
    if cert_path:
        expanded_cert = cert_path.expanduser()
        if not expanded_cert.exists():
            raise typer.BadParameter("Certificate file not found for --cert option.")
        ca_cert = str(expanded_cert)
    try:
        return HMCClient(
            base_url=endpoint,
            userid=username,
            password=password,
            skip_cert=skip_cert,
            ca_cert=ca_cert,
            trace=trace,
            read_timeout=timeout,
        )
    except HmcError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


console = Console(force_terminal=False, color_system=None)


def _render_rich_table(view: TableView, rows: Sequence[Mapping[str, Any]]) -> None:
    table = Table(
        title=view.title,
        box=box.SIMPLE,
        show_lines=False,
        header_style="bold cyan",
    )
    for column in view.columns:
        table.add_column(column.header, justify=column.justify)
    ordered_rows = list(rows)
    if view.sort_key:
        ordered_rows.sort(key=view.sort_key)
    for row in ordered_rows:
        table.add_row(*(column.render(row) for column in view.columns))
    console.print(table)


def _present_output(payload: Any, *, view_id: str | None, json_output: bool) -> None:
    view = CLI_TABLE_VIEWS.get(view_id) if view_id else None
    if json_output or view is None or not isinstance(payload, list):
        _echo_json(payload)
        return
    rows = [item for item in payload if isinstance(item, Mapping)]
    if not rows:
        _echo_json(payload)
        return
    _render_rich_table(view, rows)


def _handle_request_error(exc: HmcError) -> None:
    message = f"Request failed (status {exc.status_code}, reason {int(exc.reason)}): {exc.message}"
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _job_payload(result: str | Job) -> dict[str, Any]:
    if isinstance(result, Job):
        payload = asdict(result)
        payload.pop("raw", None)
        return payload
    return {"job-uri": result}


def _shared_options() -> dict[str, Any]:  # pragma: no cover - helper indirection
    return {
        "endpoint": typer.Option(
            ...,
            "--endpoint",
            "-e",
            envvar="HMC_ENDPOINT",
            help="HMC API endpoint, e.g. https://hmc.example.com:6794.",
        ),
        "username": typer.Option(
            ..., "--username", "-u", envvar="HMC_USERNAME", help="HMC user id."
        ),
        "password": typer.Option(
            ...,
            "--password",
            "-p",
            envvar="HMC_PASSWORD",
            help="HMC password.",
            hide_input=True,
        ),
        "skip_cert": typer.Option(
            False,
            "--skip-cert/--verify-cert",
            envvar="HMC_SKIP_CERT",
            help="Skip TLS certificate verification.",
            show_default=True,
        ),
        "cert_path": typer.Option(
            None,
            "--cert",
            envvar="HMC_CA_CERT",
            help="Path to a PEM root certificate for TLS verification.",
        ),
        "timeout": typer.Option(3600.0, help="Read timeout (seconds).", show_default=True),
        "trace": typer.Option(False, "--trace", help="Dump HTTP exchanges to stdout."),
        "output_json": typer.Option(
            False,
            "--json",
            "-j",
            help="Return raw JSON instead of rendering a table.",
        ),
    }


_SHARED_OPTIONS = _shared_options()


@cpcs_app.command("list")
def cpcs_list(
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
    output_json: bool = _SHARED_OPTIONS["output_json"],
) -> None:
    """List CPCs managed by the HMC."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            cpcs = client.cpcs.list()
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _present_output(cpcs, view_id="cpcs.list", json_output=output_json)


@partitions_app.command("list")
def partitions_list(
    cpc_uri: str = typer.Option(..., "--cpc-uri", help="URI of the CPC, e.g. /api/cpcs/<id>."),
    name: str | None = typer.Option(None, "--name", help="Filter by partition name."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
    output_json: bool = _SHARED_OPTIONS["output_json"],
) -> None:
    """List partitions of a CPC."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            partitions = client.partitions.list(cpc_uri, {"name": name})
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _present_output(partitions, view_id="partitions.list", json_output=output_json)


@partitions_app.command("show")
def partitions_show(
    partition_uri: str = typer.Argument(..., help="URI of the partition."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
) -> None:
    """Show the properties of a partition."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            partition = client.partitions.get(partition_uri)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _echo_json(partition)


@partitions_app.command("start")
def partitions_start(
    partition_uri: str = typer.Argument(..., help="URI of the partition."),
    wait: bool = typer.Option(False, "--wait", help="Wait for the start job to finish."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
) -> None:
    """Start a partition."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            result = client.partitions.start(partition_uri, wait_for_completion=wait)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _echo_json(_job_payload(result))


@partitions_app.command("stop")
def partitions_stop(
    partition_uri: str = typer.Argument(..., help="URI of the partition."),
    wait: bool = typer.Option(False, "--wait", help="Wait for the stop job to finish."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
) -> None:
    """Stop a partition."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            result = client.partitions.stop(partition_uri, wait_for_completion=wait)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _echo_json(_job_payload(result))


@adapters_app.command("list")
def adapters_list(
    cpc_uri: str = typer.Option(..., "--cpc-uri", help="URI of the CPC."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
    output_json: bool = _SHARED_OPTIONS["output_json"],
) -> None:
    """List adapters of a CPC."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            adapters = client.adapters.list(cpc_uri)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _present_output(adapters, view_id="adapters.list", json_output=output_json)


@vswitches_app.command("list")
def vswitches_list(
    cpc_uri: str = typer.Option(..., "--cpc-uri", help="URI of the CPC."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
    output_json: bool = _SHARED_OPTIONS["output_json"],
) -> None:
    """List virtual switches of a CPC."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            vswitches = client.virtual_switches.list(cpc_uri)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _present_output(vswitches, view_id="vswitches.list", json_output=output_json)


@storage_groups_app.command("list")
def storage_groups_list(
    cpc_uri: str | None = typer.Option(None, "--cpc-uri", help="Only groups of this CPC."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
    output_json: bool = _SHARED_OPTIONS["output_json"],
) -> None:
    """List storage groups."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            groups = client.storage_groups.list(cpc_uri)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _present_output(groups, view_id="storage-groups.list", json_output=output_json)


@jobs_app.command("show")
def jobs_show(
    job_uri: str = typer.Argument(..., help="URI of the job."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
) -> None:
    """Show the status of an asynchronous job."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            job = client.jobs.query(job_uri)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    _echo_json(_job_payload(job))


@jobs_app.command("cancel")
def jobs_cancel(
    job_uri: str = typer.Argument(..., help="URI of the job."),
    endpoint: str = _SHARED_OPTIONS["endpoint"],
    username: str = _SHARED_OPTIONS["username"],
    password: str = _SHARED_OPTIONS["password"],
    skip_cert: bool = _SHARED_OPTIONS["skip_cert"],
    cert_path: Path | None = _SHARED_OPTIONS["cert_path"],
    timeout: float = _SHARED_OPTIONS["timeout"],
    trace: bool = _SHARED_OPTIONS["trace"],
) -> None:
    """Request cancellation of an asynchronous job."""

    with _build_client(endpoint, username, password, skip_cert, cert_path, timeout, trace) as client:
        try:
            client.jobs.cancel(job_uri)
        except HmcError as exc:
            _handle_request_error(exc)
            return

    typer.secho(f"Cancellation requested for {job_uri}.", fg=typer.colors.GREEN)


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    app()
