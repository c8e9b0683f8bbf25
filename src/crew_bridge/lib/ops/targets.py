"""Target invocation and discovery operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import cast

from crew_bridge.lib.discovery import TargetInfo
from crew_bridge.lib.domain import InvocationRequest, InvocationResult
from crew_bridge.lib.formatting import FormatContext
from crew_bridge.lib.ops._runtime import build_engine
from crew_bridge.lib.ops.registry import OperationSpec, operation
from crew_bridge.lib.validation import validate_request


def _empty_env() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class TargetsInvokeInput:
    namespace: str
    name: str
    payload: str
    timeout_ms: int | None = None
    env: dict[str, str] = field(default_factory=_empty_env)
    repo_root: str | None = None


@dataclass(frozen=True, slots=True)
class TargetsListInput:
    repo_root: str | None = None


@dataclass(frozen=True, slots=True)
class TargetsShowInput:
    namespace: str
    name: str
    repo_root: str | None = None


@dataclass(frozen=True, slots=True)
class TargetsListOutput:
    targets: tuple[TargetInfo, ...]

    def format_text(self, ctx: FormatContext | None = None) -> str:
        if not self.targets:
            return "(no targets)"
        return "\n".join(target.format_text(ctx) for target in self.targets)


def _request_from_input(payload: TargetsInvokeInput) -> InvocationRequest:
    return validate_request(
        {
            "namespace": payload.namespace,
            "name": payload.name,
            "payload": payload.payload,
            "timeout_override_ms": payload.timeout_ms,
            "extra_env": payload.env,
        }
    )


def _not_found(namespace: str, name: str) -> KeyError:
    return KeyError(f"Target '{namespace}/{name}' not found.")


def targets_invoke_sync(payload: TargetsInvokeInput) -> InvocationResult:
    request = _request_from_input(payload)
    return build_engine(payload.repo_root).invoke_sync(request)


async def targets_invoke(payload: TargetsInvokeInput) -> InvocationResult:
    request = _request_from_input(payload)
    return await build_engine(payload.repo_root).invoke(request)


def targets_list_sync(payload: TargetsListInput) -> TargetsListOutput:
    targets = build_engine(payload.repo_root).list_targets_sync()
    return TargetsListOutput(targets=tuple(targets))


async def targets_list(payload: TargetsListInput) -> TargetsListOutput:
    targets = await build_engine(payload.repo_root).list_targets()
    return TargetsListOutput(targets=tuple(targets))


def targets_show_sync(payload: TargetsShowInput) -> TargetInfo:
    info = build_engine(payload.repo_root).get_target_info_sync(payload.namespace, payload.name)
    if info is None:
        raise _not_found(payload.namespace, payload.name)
    return info


async def targets_show(payload: TargetsShowInput) -> TargetInfo:
    info = await build_engine(payload.repo_root).get_target_info(payload.namespace, payload.name)
    if info is None:
        raise _not_found(payload.namespace, payload.name)
    return info


operation(
    OperationSpec[TargetsInvokeInput, InvocationResult](
        name="targets.invoke",
        handler=targets_invoke,
        sync_handler=targets_invoke_sync,
        input_type=TargetsInvokeInput,
        output_type=cast("type[InvocationResult]", InvocationResult),
        description="Run one target with a payload and return its output or failure.",
    )
)

operation(
    OperationSpec[TargetsListInput, TargetsListOutput](
        name="targets.list",
        handler=targets_list,
        sync_handler=targets_list_sync,
        input_type=TargetsListInput,
        output_type=TargetsListOutput,
        description="List the targets the target program advertises.",
    )
)

operation(
    OperationSpec[TargetsShowInput, TargetInfo](
        name="targets.show",
        handler=targets_show,
        sync_handler=targets_show_sync,
        input_type=TargetsShowInput,
        output_type=TargetInfo,
        description="Show one advertised target by namespace and name.",
    )
)
