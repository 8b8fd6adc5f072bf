"""Step stages, step results and the checks that decide whether a step runs."""

from __future__ import annotations

import enum
import logging
import posixpath
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from actrunner.expression import (
    DefaultStatusCheck,
    ExpressionError,
    ExpressionEvaluator,
    eval_bool,
)

log = logging.getLogger(__name__)


class StepStage(enum.Enum):
    """The stage of a step being run."""

    PRE = 0
    MAIN = 1
    POST = 2

    def __str__(self) -> str:
        return self.name.capitalize()


class StepStatus(str, enum.Enum):
    """Outcome or conclusion of a step."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


@dataclass
class StepResult:
    """What a step ended with and the outputs it set."""

    outcome: StepStatus = StepStatus.SUCCESS
    conclusion: StepStatus = StepStatus.SUCCESS
    outputs: dict[str, str] = field(default_factory=dict)


def merge_into_map(target: dict[str, str], *args: Mapping[str, str]) -> None:
    """Update ``target`` with each mapping in turn; later mappings win."""
    for mapping in args:
        target.update(mapping)


def file_command_paths(act_path: str) -> dict[str, str]:
    """Paths of the runner file commands, keyed by the variable that names them."""
    return {
        name: posixpath.join(act_path, "workflow", filename)
        for name, filename in (
            ("GITHUB_OUTPUT", "outputcmd.txt"),
            ("GITHUB_STATE", "statecmd.txt"),
            ("GITHUB_PATH", "pathcmd.txt"),
            ("GITHUB_ENV", "envs.txt"),
            ("GITHUB_STEP_SUMMARY", "SUMMARY.md"),
        )
    }


def is_step_enabled(evaluator: ExpressionEvaluator, expression: str, stage: StepStage) -> bool:
    """Evaluate a step's ``if`` expression; post stages default to ``always()``."""
    check = DefaultStatusCheck.ALWAYS if stage is StepStage.POST else DefaultStatusCheck.SUCCESS
    try:
        return eval_bool(evaluator, expression, check)
    except ExpressionError as exc:
        raise ExpressionError(f'  \u274c  Error in if-expression: "if: {expression}" ({exc})') from exc


def is_continue_on_error(evaluator: ExpressionEvaluator, expression: str) -> bool:
    """Evaluate a step's ``continue-on-error`` value; empty means False."""
    if not expression.strip():
        return False
    try:
        return eval_bool(evaluator, expression, DefaultStatusCheck.NONE)
    except ExpressionError as exc:
        raise ExpressionError(
            f'  \u274c  Error in continue-on-error-expression: "continue-on-error: {expression}" ({exc})'
        ) from exc


def interpolate_step_env(
    env: dict[str, str],
    evaluator: ExpressionEvaluator,
    input_evaluator: ExpressionEvaluator | Callable[[dict[str, str]], ExpressionEvaluator] | None = None,
) -> dict[str, str]:
    """Interpolate a step's environment in place and return it.

    Plain variables are interpolated first; ``INPUT_*`` variables are then
    interpolated with ``input_evaluator``, which may be a factory that receives
    the already interpolated environment.
    """
    for key, value in list(env.items()):
        if not key.startswith("INPUT_"):
            env[key] = evaluator.interpolate(value)

    if input_evaluator is None:
        inputs = evaluator
    elif callable(input_evaluator):
        inputs = input_evaluator(env)
    else:
        inputs = input_evaluator

    for key, value in list(env.items()):
        if key.startswith("INPUT_"):
            env[key] = inputs.interpolate(value)

    log.debug("setupEnv => %s", env)
    return env