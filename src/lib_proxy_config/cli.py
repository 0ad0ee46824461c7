"""CLI adapter for ``lib_proxy_config`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose the configuration compiler via a command line interface so operators
can validate and inspect documents (plus override files) before handing them
to the runtime.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command that wires global traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata for quick diagnostics.
* :func:`cli_compile` – compiles documents and prints the result as JSON.
* :func:`cli_check` – compiles documents and reports success.
* :func:`cli_protocols` – lists the registered protocol names.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer. It invokes the composition root
(:func:`lib_proxy_config.core.read_config`) and never reaches into adapters or
compilers directly. ``lib_cli_exit_tools`` centralises the exit code strategy.
"""

from __future__ import annotations

import sys
from importlib import metadata
from pathlib import Path
from typing import Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .application.registry import DEFAULT_REGISTRIES
from .core import read_config

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

DIRECTION_CHOICES: Final[tuple[str, ...]] = ("inbound", "outbound")

_DOCUMENT_PATH = click.Path(path_type=Path, exists=True, file_okay=True, dir_okay=False, readable=True)


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` when not installed."""

    try:
        return metadata.version("lib_proxy_config")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Proxy runtime configuration compiler",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_proxy_config",
    message="lib_proxy_config version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_proxy_config")
    except metadata.PackageNotFoundError:
        click.echo("lib_proxy_config (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_proxy_config')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("compile", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("config", type=_DOCUMENT_PATH)
@click.argument("overrides", nargs=-1, type=_DOCUMENT_PATH)
@click.option(
    "--indent",
    type=int,
    default=None,
    help="Pretty-print JSON output with the provided indent size",
)
@click.option(
    "--tail-outbounds/--head-outbounds",
    "tail_outbounds",
    default=None,
    help="Where an unmatched override outbound goes (default: by override file name)",
)
def cli_compile(
    config: Path,
    overrides: Sequence[Path],
    indent: Optional[int],
    tail_outbounds: Optional[bool],
) -> None:
    """Compile CONFIG, apply OVERRIDES in order, and print the result as JSON.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> doc = Path(tmp.name) / "config.json"
    >>> _ = doc.write_text('{"outbounds": [{"protocol": "freedom", "tag": "direct"}]}', encoding="utf-8")
    >>> result = CliRunner().invoke(cli, ["compile", str(doc)])
    >>> '"direct"' in result.output
    True
    >>> tmp.cleanup()
    """

    compiled = read_config([config, *overrides], append_unmatched_outbound=tail_outbounds)
    click.echo(compiled.to_json(indent=indent))


@cli.command("check", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("config", type=_DOCUMENT_PATH)
@click.argument("overrides", nargs=-1, type=_DOCUMENT_PATH)
def cli_check(config: Path, overrides: Sequence[Path]) -> None:
    """Compile CONFIG (plus OVERRIDES) and report whether it is valid."""

    read_config([config, *overrides])
    click.echo("Configuration OK.")


@cli.command("protocols", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option(
    "--direction",
    type=click.Choice(DIRECTION_CHOICES, case_sensitive=False),
    default=None,
    help="Only list protocols for one direction",
)
def cli_protocols(direction: Optional[str]) -> None:
    """List the protocol names the compiler accepts."""

    selected = DIRECTION_CHOICES if direction is None else (direction.lower(),)
    for name in selected:
        registry = getattr(DEFAULT_REGISTRIES, name)
        click.echo(f"{name}: {', '.join(registry.names())}")


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_proxy_config",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
