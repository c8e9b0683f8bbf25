"""Cyclopts CLI entry point for crew-bridge."""

from __future__ import annotations

import sys
from contextvars import ContextVar
from dataclasses import dataclass
from itertools import islice
from typing import TYPE_CHECKING, Annotated

from cyclopts import App, Parameter

from crew_bridge import __version__
from crew_bridge.cli.output import OutputConfig
from crew_bridge.cli.output import emit as emit_output
from crew_bridge.cli.targets_cmd import register_targets_commands
from crew_bridge.lib.exec.errors import EngineError
from crew_bridge.lib.logging import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

EXIT_FAILURE = 1
EXIT_ENGINE_ERROR = 2

# Command options whose value must never be read as a global flag.
_VALUE_OPTIONS = frozenset({"--input", "-i", "--env", "--timeout-ms"})


@dataclass(frozen=True, slots=True)
class GlobalOptions:
    """Flags accepted anywhere on the command line, before or after the command."""

    output: OutputConfig
    repo_root: str | None = None


_OPTIONS: ContextVar[GlobalOptions] = ContextVar(
    "_OPTIONS", default=GlobalOptions(output=OutputConfig(format="text"))
)


def split_global_options(argv: Sequence[str]) -> tuple[list[str], GlobalOptions]:
    """Pull `--json`, `-v` and `--repo-root` out of argv; `--` ends the scan."""

    remaining: list[str] = []
    json_mode = False
    verbosity = 0
    repo_root: str | None = None

    tokens = iter(argv)
    for token in tokens:
        if token == "--":
            remaining.append(token)
            remaining.extend(tokens)
            break
        if token in _VALUE_OPTIONS:
            remaining.append(token)
            remaining.extend(islice(tokens, 1))
        elif token in ("--json", "--no-json"):
            json_mode = token == "--json"
        elif token in ("-v", "--verbose"):
            verbosity += 1
        elif token == "-vv":
            verbosity += 2
        elif token == "--repo-root":
            repo_root = next(tokens, None)
            if repo_root is None:
                raise SystemExit("--repo-root requires a value")
        elif token.startswith("--repo-root="):
            repo_root = token.partition("=")[2]
        else:
            remaining.append(token)

    output = OutputConfig(format="json" if json_mode else "text", verbosity=verbosity)
    return remaining, GlobalOptions(output=output, repo_root=repo_root or None)


def _emit(payload: object) -> None:
    emit_output(payload, _OPTIONS.get().output)


def _repo_root() -> str | None:
    return _OPTIONS.get().repo_root


app = App(
    name="crew-bridge",
    help="Run targets of an external agent program as supervised subprocesses.",
    version=__version__,
    help_formatter="plain",
    result_action="return_value",
)


@app.default
def root(
    json_mode: Annotated[
        bool,
        Parameter(name="--json", help="Emit command output as JSON."),
    ] = False,
    repo_root: Annotated[
        str | None,
        Parameter(name="--repo-root", help="Repository holding .crew-bridge/config.toml."),
    ] = None,
    verbose: Annotated[
        bool,
        Parameter(name=["--verbose", "-v"], help="Increase log verbosity (repeatable)."),
    ] = False,
) -> None:
    """Print help. Global flags are documented here and consumed before dispatch."""

    _ = (json_mode, repo_root, verbose)
    app.help_print()


@app.command(name="serve")
def serve() -> None:
    """Serve the target operations as MCP tools on stdio."""

    from crew_bridge.server.main import run_server

    run_server()


_CLI_COMMANDS = register_targets_commands(app, _emit, _repo_root)


def get_registered_cli_commands() -> frozenset[str]:
    return _CLI_COMMANDS


def _exit_code_for_error(exc: Exception) -> int:
    if isinstance(exc, EngineError):
        return EXIT_ENGINE_ERROR
    return EXIT_FAILURE


def _error_text(exc: Exception) -> str:
    # KeyError's str() adds quotes around the message.
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc).strip() or type(exc).__name__


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point used by `crew-bridge` and `python -m crew_bridge`."""

    args, options = split_global_options(sys.argv[1:] if argv is None else argv)
    configure_logging(
        json_mode=options.output.format == "json",
        verbosity=options.output.verbosity,
    )

    token = _OPTIONS.set(options)
    try:
        app(args)
    except (EngineError, KeyError, ValueError, OSError) as exc:
        print(f"error: {_error_text(exc)}", file=sys.stderr)
        raise SystemExit(_exit_code_for_error(exc)) from None
    finally:
        _OPTIONS.reset(token)
