"""Runner configuration, event payload loading and plan-level helpers."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_MAX_PARALLEL = 4


@dataclass
class Config:
    """Settings that control how workflows are run."""

    actor: str = ""
    workdir: str = ""
    bind_workdir: bool = False
    event_name: str = ""
    event_path: str = ""
    default_branch: str = ""
    reuse_containers: bool = False
    force_pull: bool = False
    force_rebuild: bool = False
    log_output: bool = False
    json_logger: bool = False
    env: dict[str, str] = field(default_factory=dict)
    inputs: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, str] = field(default_factory=dict)
    token: str = ""
    insecure_secrets: bool = False
    platforms: dict[str, str] = field(default_factory=dict)
    privileged: bool = False
    userns_mode: str = ""
    container_architecture: str = ""
    container_daemon_socket: str = ""
    container_options: str = ""
    use_git_ignore: bool = True
    github_instance: str = "github.com"
    container_cap_add: list[str] = field(default_factory=list)
    container_cap_drop: list[str] = field(default_factory=list)
    auto_remove: bool = False
    artifact_server_path: str = ""
    artifact_server_addr: str = ""
    artifact_server_port: str = ""
    no_skip_checkout: bool = False
    remote_name: str = ""
    replace_ghe_action_with_github_com: list[str] = field(default_factory=list)
    replace_ghe_action_token_with_github_com: str = ""


class JobFailedError(RuntimeError):
    """Raised when a job of a plan ended with a failure result."""


@dataclass
class JobRun:
    """One planned run of a job and the result it ended with."""

    job_id: str
    name: str = ""
    result: str = ""

    def __str__(self) -> str:
        return self.name or self.job_id


def load_event_json(config: Config) -> str:
    """Return the event payload: the event file, the manual inputs, or ``{}``."""
    if config.event_path:
        log.debug("Reading event.json from %s", config.event_path)
        return Path(config.event_path).read_text()
    if config.inputs:
        return json.dumps({"inputs": config.inputs}, separators=(",", ":"), sort_keys=True)
    return "{}"


def handle_failure(stages: Iterable[Iterable[JobRun]]) -> None:
    """Raise :class:`JobFailedError` for the first run whose result is a failure."""
    for stage in stages:
        for run in stage:
            if run.result == "failure":
                raise JobFailedError(f"Job '{run}' failed")


def max_parallel(matrix_count: int, strategy_max_parallel: int | None = None) -> int:
    """Number of matrix jobs that may run at once."""
    limit = DEFAULT_MAX_PARALLEL if strategy_max_parallel is None else strategy_max_parallel
    return min(limit, matrix_count)


def matrix_job_name(name: str, index: int, matrix_count: int) -> str:
    """Name of the ``index``-th (zero based) job of a matrix build."""
    if matrix_count > 1:
        return f"{name}-{index + 1}"
    return name