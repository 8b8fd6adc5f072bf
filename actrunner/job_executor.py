"""Runs the steps of one job: pre stages, main stages and post stages in reverse."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

log = logging.getLogger(__name__)


class InvalidStepError(ValueError):
    """Raised when a job lists a step without a ``run`` or ``uses`` key."""


class JobInfo(Protocol):
    """The job being run: its steps, its matrix and its container lifecycle."""

    def matrix(self) -> Mapping[str, Any]: ...

    def steps(self) -> Sequence[Any]: ...

    def start_container(self) -> None: ...

    def stop_container(self) -> None: ...

    def close_container(self) -> None: ...

    def interpolate_outputs(self) -> None: ...

    def set_result(self, result: str) -> None: ...

    def current_result(self) -> str: ...


class Step(Protocol):
    """A runnable step with its three stages."""

    def pre(self) -> None: ...

    def main(self) -> None: ...

    def post(self) -> None: ...


StepFactory = Callable[[Any], Step]


def job_result(matrix: Mapping[str, Any] | None, previous_result: str, success: bool) -> str:
    """Result of a job run.

    A matrix build has one result for all its jobs, so an existing result is
    kept while the matrix runs; any failure turns it into ``failure``.
    """
    result = "success"
    if matrix and previous_result:
        result = previous_result
    if not success:
        result = "failure"
    return result


@dataclass
class JobExecutor:
    """Executes a job's steps around the start and stop of its container."""

    info: JobInfo
    steps: list[tuple[Any, Step]] = field(default_factory=list)
    auto_remove: bool = False
    error: Exception | None = None
    job_error: Exception | None = None

    def run(self) -> None:
        """Run the job; step failures are recorded, not raised."""
        if self.error is not None:
            raise self.error
        if not self.steps:
            log.debug("No steps found")
            return

        self.info.start_container()
        try:
            try:
                try:
                    self._run_pipeline()
                finally:
                    self._run_post()
            finally:
                self.info.interpolate_outputs()
        finally:
            self.info.close_container()

    def _run_pipeline(self) -> None:
        for _, step in self.steps:
            step.pre()
        matrix = self.info.matrix()
        if matrix:
            log.info("\U0001F9EA  Matrix: %s", dict(matrix))
        for _, step in self.steps:
            try:
                step.main()
            except Exception as exc:  # a failing step fails the job, not the run
                log.error("%s", exc)
                self.job_error = exc

    def _run_post(self) -> None:
        actions: list[Callable[[], None]] = [step.post for _, step in reversed(self.steps)]
        actions.append(self._finish)
        error: Exception | None = None
        for action in actions:
            try:
                action()
            except Exception as exc:
                error = exc
        if error is not None:
            raise error

    def _finish(self) -> None:
        error: Exception | None = None
        if self.auto_remove or self.job_error is None:
            try:
                self.info.stop_container()
            except Exception as exc:
                error = exc
        result = job_result(self.info.matrix(), self.info.current_result(), self.job_error is None)
        self.info.set_result(result)
        message = "succeeded" if result == "success" else "failed"
        log.info("\U0001F3C1  Job %s", message, extra={"jobResult": result})
        if error is not None:
            raise error


def new_job_executor(info: JobInfo, step_factory: StepFactory, auto_remove: bool = False) -> JobExecutor:
    """Build the executor for a job, creating a step for each step model."""
    models = list(info.steps())
    if not models:
        return JobExecutor(info, [], auto_remove)

    steps: list[tuple[Any, Step]] = []
    for index, model in enumerate(models):
        if model is None:
            return JobExecutor(
                info, [], auto_remove,
                error=InvalidStepError(f"invalid Step {index}: missing run or uses key"),
            )
        if not getattr(model, "id", ""):
            model.id = str(index)
        try:
            step = step_factory(model)
        except Exception as exc:
            return JobExecutor(info, [], auto_remove, error=exc)
        steps.append((model, step))
    return JobExecutor(info, steps, auto_remove)