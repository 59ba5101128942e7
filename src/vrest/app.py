"""Typer application and CLI entry point for vrest.

``vrest request METHOD URL`` sends one request through a fully configured
:class:`~vrest.client.Client` and prints the response body to stdout::

    vrest --verbose request GET https://api.example.com/orders/{id} --path-param id=7
    vrest request POST /orders --base-url https://api.example.com --json -d '{"qty": 2}'

Diagnostics (traces with ``--verbose``, errors) go to stderr. Failures exit
with the ``exit_code`` of the raised :class:`~vrest.exceptions.VrestError`.
"""

from __future__ import annotations

import json
import signal
import sys
from typing import Any, Optional

import typer

from vrest import __version__
from vrest.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="vrest",
    help="Send REST requests through a configurable vrest client.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vrest {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json-output", help="Print the response as raw JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Trace requests on stderr."),
) -> None:
    """Install the global output manager from the CLI flags."""
    from vrest.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))


@app.command("request")
def request_command(
    method: str = typer.Argument(..., help="HTTP method, e.g. GET or POST."),
    path: str = typer.Argument(..., help="Path or full URL; may contain {name} placeholders."),
    path_param: Optional[list[str]] = typer.Option(
        None, "--path-param", "-P", help="Placeholder value as name=value (repeatable)."
    ),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Query parameter as key=value (repeatable)."
    ),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Request body."),
    json_body: bool = typer.Option(False, "--json", help="Send the body as JSON."),
    xml_body: bool = typer.Option(False, "--xml", help="Send the body as XML."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Base URL prepended to the path."),
    bearer: Optional[str] = typer.Option(None, "--bearer", help="Bearer token."),
    basic: Optional[str] = typer.Option(None, "--basic", help="Basic auth as user:password."),
    success_code: Optional[list[int]] = typer.Option(
        None, "--success-code", help="Status code to treat as success (repeatable)."
    ),
    limit: Optional[int] = typer.Option(None, "--limit", help="Response body limit in bytes."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Timeout in seconds."),
    config_path: Optional[str] = typer.Option(None, "--config", help="JSON client config file."),
) -> None:
    """Send one request and print the response body."""
    from vrest.body import RawBytesTarget
    from vrest.client import Client
    from vrest.config import resolve_client_config
    from vrest.exceptions import InvalidRequestError, VrestError
    from vrest.output import get_output

    output = get_output()
    try:
        config = resolve_client_config(
            config_path,
            base_url=base_url,
            response_body_limit=limit,
            timeout=timeout,
        )
        with Client.from_config(config) as client:
            if bearer:
                client.set_bearer_auth(bearer)
            elif basic:
                user, _, password = basic.partition(":")
                client.set_basic_auth(user, password)

            target = RawBytesTarget()
            req = client.new_request().set_response_body(target)
            for item in header or []:
                name, sep, value = item.partition(":")
                if not sep:
                    raise InvalidRequestError(f"invalid header {item!r}, expected 'Name: value'")
                req.set_header(name.strip(), value.strip())
            for key, values in _pairs(param or [], "query parameter").items():
                req.set_query_param(key, *values)
            if success_code:
                req.set_success_status_code(*success_code)
            if json_body:
                req.set_content_type_json()
            elif xml_body:
                req.set_content_type_xml()
            if data is not None:
                req.set_body(_parse_body(data) if json_body else data)

            path_params: list[str] = []
            for key, values in _pairs(path_param or [], "path parameter").items():
                path_params.extend([key, values[-1]])

            req.do(method.upper(), path, *path_params)

            output.info(f"HTTP {req.response.status_code} {req.response.raw.reason_phrase}")
            if target.data:
                output.format_response(
                    target.data.decode("utf-8", errors="replace"), req.response.content_type
                )
    except VrestError as exc:
        output.error(str(exc))
        raise typer.Exit(exc.exit_code)


def _pairs(items: list[str], what: str) -> dict[str, list[str]]:
    from vrest.exceptions import InvalidRequestError

    result: dict[str, list[str]] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise InvalidRequestError(f"invalid {what} {item!r}, expected key=value")
        result.setdefault(key, []).append(value)
    return result


def _parse_body(body: str) -> Any:
    """Parse *body* as JSON so it is re-encoded by the codec; keep text otherwise."""
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """Console-script entry point."""
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from vrest.exceptions import VrestError
        from vrest.output import error

        error(str(exc))
        if isinstance(exc, VrestError):
            sys.exit(exc.exit_code)
        sys.exit(EXIT_GENERIC_FAILURE)
