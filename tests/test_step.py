import pytest

from actrunner.expression import ExpressionError, ExpressionEvaluator, Interpreter
from actrunner.github_env import job_status
from actrunner.step import (
    StepResult,
    StepStage,
    StepStatus,
    file_command_paths,
    interpolate_step_env,
    is_continue_on_error,
    is_step_enabled,
    merge_into_map,
)


def step_evaluator(step_results=None, env=None):
    results = step_results or {}
    contexts = {
        "job": {"status": job_status(r.conclusion for r in results.values())},
        "steps": {k: {"conclusion": str(r.conclusion), "outcome": str(r.outcome),
                      "outputs": r.outputs} for k, r in results.items()},
        "env": env or {},
    }
    return ExpressionEvaluator(Interpreter(contexts, context="step"))


@pytest.mark.parametrize("target, maps, expected", [
    ({}, [], {}),
    ({}, [{"key1": "value1", "key2": "value2"}, {"key2": "overridden", "key3": "value3"}],
     {"key1": "value1", "key2": "overridden", "key3": "value3"}),
    ({"key1": "value1", "key2": "value2"}, [{"key1": "overridden"}],
     {"key1": "overridden", "key2": "value2"}),
])
def test_merge_into_map(target, maps, expected):
    merge_into_map(target, *maps)
    assert target == expected


@pytest.mark.parametrize("stage, name", [
    (StepStage.PRE, "Pre"), (StepStage.MAIN, "Main"), (StepStage.POST, "Post"),
])
def test_stage_str(stage, name):
    assert str(stage) == name


def test_step_status_values():
    assert StepStatus.FAILURE == "failure"
    assert str(StepStatus.SKIPPED) == "skipped"
    result = StepResult()
    assert result.outcome is StepStatus.SUCCESS and result.outputs == {}


def test_file_command_paths():
    paths = file_command_paths("/var/run/act")
    assert paths == {
        "GITHUB_OUTPUT": "/var/run/act/workflow/outputcmd.txt",
        "GITHUB_STATE": "/var/run/act/workflow/statecmd.txt",
        "GITHUB_PATH": "/var/run/act/workflow/pathcmd.txt",
        "GITHUB_ENV": "/var/run/act/workflow/envs.txt",
        "GITHUB_STEP_SUMMARY": "/var/run/act/workflow/SUMMARY.md",
    }


SUCCESS = {"a": StepResult(conclusion=StepStatus.SUCCESS)}
FAILURE = {"a": StepResult(conclusion=StepStatus.FAILURE)}


@pytest.mark.parametrize("expr, results, expected", [
    ("success()", None, True),
    ("success()", SUCCESS, True),
    ("success()", FAILURE, False),
    ("failure()", None, False),
    ("failure()", SUCCESS, False),
    ("failure()", FAILURE, True),
    ("always()", None, True),
    ("always()", SUCCESS, True),
    ("always()", FAILURE, True),
])
def test_is_step_enabled(expr, results, expected):
    assert is_step_enabled(step_evaluator(results), expr, StepStage.MAIN) is expected


def test_is_step_enabled_default_check_by_stage():
    evaluator = step_evaluator(FAILURE)
    assert is_step_enabled(evaluator, "true", StepStage.MAIN) is False
    assert is_step_enabled(evaluator, "true", StepStage.POST) is True


def test_is_step_enabled_error():
    with pytest.raises(ExpressionError, match="Error in if-expression"):
        is_step_enabled(step_evaluator(), "INVALID_EXPRESSION", StepStage.MAIN)


@pytest.mark.parametrize("expr, expected", [
    ("", False),
    ("true", True),
    ("false", False),
    ("${{ 'test' == 'test' }}", True),
    ("${{ 'test' != 'test' }}", False),
])
def test_is_continue_on_error(expr, expected):
    assert is_continue_on_error(step_evaluator(), expr) is expected


def test_is_continue_on_error_parse_error():
    with pytest.raises(ExpressionError, match="continue-on-error"):
        is_continue_on_error(step_evaluator(), "${{ 'test' != test }}")


def test_interpolate_step_env_uses_new_env_for_inputs():
    env = {"FOO": "${{ 'bar' }}", "INPUT_X": "${{ env.FOO }}", "PLAIN": "text"}
    result = interpolate_step_env(
        env, step_evaluator(),
        lambda e: ExpressionEvaluator(Interpreter({"env": dict(e)}, context="step")),
    )
    assert result is env
    assert env == {"FOO": "bar", "INPUT_X": "bar", "PLAIN": "text"}


def test_interpolate_step_env_default_input_evaluator():
    env = {"INPUT_X": "${{ env.FOO }}"}
    interpolate_step_env(env, step_evaluator(env={"FOO": "from-rc"}))
    assert env == {"INPUT_X": "from-rc"}