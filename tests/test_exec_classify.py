from __future__ import annotations

import signal

import pytest

from crew_bridge.lib.domain import InvocationFailure, InvocationSuccess
from crew_bridge.lib.exec.classify import (
    classify_spawn_result,
    exit_failure_message,
    timeout_message,
)
from crew_bridge.lib.exec.errors import (
    EngineError,
    ErrorCategory,
    configuration_error,
    is_timeout_message,
    validation_error,
)
from crew_bridge.lib.exec.spawn import SpawnResult
from crew_bridge.lib.formatting import FormatContext, TextFormattable
from crew_bridge.lib.serialization import to_jsonable

COMMAND = ("crew-agents", "run", "ns", "name", "--input", "x")


def _record(**overrides: object) -> SpawnResult:
    values: dict[str, object] = {
        "command": COMMAND,
        "timeout_ms": 1000,
        "duration_ms": 12,
        "return_code": 0,
    }
    values.update(overrides)
    return SpawnResult(**values)  # type: ignore[arg-type]


def test_exit_zero_is_success_with_trimmed_output() -> None:
    result = classify_spawn_result(_record(stdout=b"\n  the answer \n\n", stderr=b"noise"))

    assert result == InvocationSuccess(output="the answer", duration_ms=12)
    assert result.succeeded is True
    assert result.error_message is None
    assert result.exit_code == 0


def test_exit_zero_with_empty_output_is_success() -> None:
    result = classify_spawn_result(_record(stdout=b""))

    assert isinstance(result, InvocationSuccess)
    assert result.output == ""


def test_exit_zero_with_invalid_utf8_is_communication_failure() -> None:
    result = classify_spawn_result(_record(stdout=b"\xff\xfe"))

    assert isinstance(result, InvocationFailure)
    assert result.category is ErrorCategory.COMMUNICATION
    assert result.exit_code == 0
    assert result.output is None
    assert "UTF-8" in result.error_message


def test_truncated_output_tolerates_split_character() -> None:
    # "é" is two bytes; the cap cut it in half.
    result = classify_spawn_result(_record(stdout="café".encode()[:-1], stdout_truncated=True))

    assert isinstance(result, InvocationSuccess)
    assert result.output == "caf"


def test_non_zero_exit_uses_stderr() -> None:
    result = classify_spawn_result(_record(return_code=3, stderr=b"  boom: bad input \n"))

    assert result == InvocationFailure(
        error_message="boom: bad input",
        category=ErrorCategory.TARGET,
        duration_ms=12,
        exit_code=3,
    )


def test_non_zero_exit_without_stderr_uses_generic_message() -> None:
    result = classify_spawn_result(_record(return_code=2, stderr=b"   \n"))

    assert isinstance(result, InvocationFailure)
    assert result.error_message == "Target exited with code 2"
    assert result.exit_code == 2


def test_signal_exit_message_names_signal() -> None:
    assert exit_failure_message(-signal.SIGTERM) == "Target was terminated by SIGTERM"
    assert exit_failure_message(-999) == "Target was terminated by signal 999"


def test_graceful_timeout_keeps_exit_code_and_reports_full_timeout() -> None:
    result = classify_spawn_result(
        _record(timed_out=True, return_code=-signal.SIGTERM, duration_ms=999, timeout_ms=1000)
    )

    assert isinstance(result, InvocationFailure)
    assert result.category is ErrorCategory.SUBPROCESS
    assert result.timed_out is True
    assert result.exit_code == -signal.SIGTERM
    assert result.duration_ms == 1000
    assert is_timeout_message(result.error_message)


def test_forced_timeout_has_no_exit_code() -> None:
    result = classify_spawn_result(
        _record(timed_out=True, force_killed=True, return_code=-9, duration_ms=1600)
    )

    assert isinstance(result, InvocationFailure)
    assert result.exit_code is None
    assert result.duration_ms == 1600
    assert result.error_message == timeout_message(1000, force_killed=True)
    assert "forcibly terminated" in result.error_message


def test_timeout_wins_over_partial_output() -> None:
    result = classify_spawn_result(_record(timed_out=True, return_code=0, stdout=b"partial"))

    assert isinstance(result, InvocationFailure)
    assert result.timed_out is True


def test_spawn_error_is_subprocess_failure_without_exit_code() -> None:
    result = classify_spawn_result(
        _record(return_code=None, spawn_error="Failed to start target process 'x': nope")
    )

    assert isinstance(result, InvocationFailure)
    assert result.category is ErrorCategory.SUBPROCESS
    assert result.exit_code is None
    assert result.timed_out is False


def test_stream_error_is_subprocess_failure() -> None:
    result = classify_spawn_result(_record(stream_error="stdout: connection reset"))

    assert isinstance(result, InvocationFailure)
    assert result.category is ErrorCategory.SUBPROCESS
    assert "stdout: connection reset" in result.error_message


def test_failure_requires_message_and_runtime_category() -> None:
    with pytest.raises(ValueError, match="non-empty"):
        InvocationFailure(error_message="", category=ErrorCategory.TARGET, duration_ms=0)
    with pytest.raises(ValueError, match="category"):
        InvocationFailure(error_message="x", category=ErrorCategory.VALIDATION, duration_ms=0)


@pytest.mark.parametrize(
    "category",
    [ErrorCategory.SUBPROCESS, ErrorCategory.TARGET, ErrorCategory.COMMUNICATION],
)
def test_engine_error_rejects_runtime_categories(category: ErrorCategory) -> None:
    with pytest.raises(ValueError, match="EngineError category"):
        EngineError("nope", category)


def test_engine_error_carries_category_and_details() -> None:
    config_err = configuration_error("bad config", field="executable_path")
    validation_err = validation_error("bad request")

    assert str(config_err) == "bad config"
    assert config_err.category is ErrorCategory.CONFIGURATION
    assert config_err.details == {"field": "executable_path"}
    assert validation_err.category is ErrorCategory.VALIDATION
    assert validation_err.details == {}
    assert EngineError("m", "validation").category is ErrorCategory.VALIDATION


def test_results_serialize_with_discriminator() -> None:
    success = to_jsonable(InvocationSuccess(output="ok", duration_ms=5))
    failure = to_jsonable(
        InvocationFailure(
            error_message="Target exited with code 1",
            category=ErrorCategory.TARGET,
            duration_ms=7,
            exit_code=1,
        )
    )

    assert success == {
        "output": "ok",
        "duration_ms": 5,
        "exit_code": 0,
        "succeeded": True,
        "error_message": None,
    }
    assert failure["succeeded"] is False
    assert failure["category"] == "target"
    assert failure["output"] is None


def test_results_are_text_formattable() -> None:
    failure = InvocationFailure(
        error_message="boom",
        category=ErrorCategory.TARGET,
        duration_ms=7,
        exit_code=1,
    )

    assert isinstance(InvocationSuccess(output="ok", duration_ms=1), TextFormattable)
    assert failure.format_text() == "target failure: boom"
    assert failure.format_text(FormatContext(verbosity=1)) == "target failure (exit 1, 7ms): boom"
