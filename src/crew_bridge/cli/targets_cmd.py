"""CLI command handlers for targets.* operations."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Annotated, Any

from cyclopts import Parameter

from crew_bridge.lib.domain import InvocationFailure, InvocationResult
from crew_bridge.lib.exec.errors import validation_error
from crew_bridge.lib.ops import get_all_operations
from crew_bridge.lib.ops.targets import (
    TargetsInvokeInput,
    TargetsListInput,
    TargetsShowInput,
    targets_invoke_sync,
    targets_list_sync,
    targets_show_sync,
)

Emitter = Callable[[Any], None]
RepoRootGetter = Callable[[], str | None]

EXIT_TARGET_FAILURE = 1
EXIT_TIMEOUT = 124


def parse_env_assignments(assignments: tuple[str, ...]) -> dict[str, str]:
    """Turn repeated `KEY=VALUE` flags into a mapping; later keys win."""

    env: dict[str, str] = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        if not sep or not key:
            raise validation_error(
                f"Invalid --env value {assignment!r}: expected KEY=VALUE.",
                field="extra_env",
                value=assignment,
            )
        env[key] = value
    return env


def exit_code_for(result: InvocationResult) -> int:
    if not isinstance(result, InvocationFailure):
        return 0
    if result.timed_out:
        return EXIT_TIMEOUT
    return EXIT_TARGET_FAILURE


def _targets_invoke(
    emit: Emitter,
    repo_root: RepoRootGetter,
    namespace: str,
    name: str,
    *,
    payload: Annotated[
        str,
        Parameter(
            name=["--input", "-i"],
            help="Payload passed to the target verbatim.",
            allow_leading_hyphen=True,
        ),
    ],
    timeout_ms: Annotated[
        int | None,
        Parameter(name="--timeout-ms", help="Deadline for this invocation in milliseconds."),
    ] = None,
    env: Annotated[
        tuple[str, ...],
        Parameter(
            name="--env",
            help="Extra KEY=VALUE environment for the target (repeatable).",
            negative_iterable=(),
        ),
    ] = (),
) -> None:
    result = targets_invoke_sync(
        TargetsInvokeInput(
            namespace=namespace,
            name=name,
            payload=payload,
            timeout_ms=timeout_ms,
            env=parse_env_assignments(env),
            repo_root=repo_root(),
        )
    )
    emit(result)
    code = exit_code_for(result)
    if code:
        raise SystemExit(code)


def _targets_list(emit: Emitter, repo_root: RepoRootGetter) -> None:
    emit(targets_list_sync(TargetsListInput(repo_root=repo_root())))


def _targets_show(emit: Emitter, repo_root: RepoRootGetter, namespace: str, name: str) -> None:
    emit(
        targets_show_sync(
            TargetsShowInput(namespace=namespace, name=name, repo_root=repo_root())
        )
    )


_COMMANDS: dict[str, Callable[..., None]] = {
    "targets.invoke": _targets_invoke,
    "targets.list": _targets_list,
    "targets.show": _targets_show,
}


def register_targets_commands(app: Any, emit: Emitter, repo_root: RepoRootGetter) -> frozenset[str]:
    """Attach one command per registered operation; returns the command names."""

    names: set[str] = set()
    for op in get_all_operations():
        command = _COMMANDS.get(op.name)
        if command is None:
            raise ValueError(f"No CLI command for operation '{op.name}'")
        bound = partial(command, emit, repo_root)
        bound.__name__ = op.cli_name  # type: ignore[attr-defined]
        bound.__doc__ = op.description
        app.command(bound, name=op.cli_name, help=op.description)
        names.add(op.cli_name)
    return frozenset(names)
