"""The ``github`` context of a job and the environment derived from it."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

DEFAULT_ACTOR = "nektos/act"


class CredentialsError(ValueError):
    """Raised when a job container's credentials are invalid."""


@dataclass
class GithubContext:
    """Values exposed to workflows as the ``github`` context."""

    event: dict[str, Any] = field(default_factory=dict)
    event_path: str = ""
    workflow: str = ""
    run_id: str = ""
    run_number: str = ""
    actor: str = ""
    repository: str = ""
    event_name: str = ""
    sha: str = ""
    ref: str = ""
    ref_name: str = ""
    ref_type: str = ""
    head_ref: str = ""
    base_ref: str = ""
    token: str = ""
    workspace: str = ""
    action: str = ""
    action_path: str = ""
    action_ref: str = ""
    action_repository: str = ""
    job: str = ""
    repository_owner: str = ""
    retention_days: str = ""
    runner_perflog: str = ""
    runner_tracking_id: str = ""

    def apply_defaults(self) -> GithubContext:
        """Fill the values a run must always have; returns the context itself."""
        self.run_id = self.run_id or "1"
        self.run_number = self.run_number or "1"
        self.retention_days = self.retention_days or "0"
        self.runner_perflog = self.runner_perflog or "/dev/null"
        self.actor = self.actor or DEFAULT_ACTOR
        return self


def image_os(platform_name: str) -> str:
    """Value of ``ImageOS`` for a runner label, such as ``ubuntu22`` for ``ubuntu-22.04``."""
    if not platform_name:
        return ""
    if platform_name == "ubuntu-latest":
        # the current ubuntu-latest cannot be resolved at run time
        return "ubuntu20"
    return platform_name.replace("-", "", 1).split(".", 1)[0]


def action_runtime_vars(env: dict[str, str], addr: str, port: str,
                        environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Set the runtime URL and token used to talk to the artifact server."""
    source = os.environ if environ is None else environ
    env["ACTIONS_RUNTIME_URL"] = source.get("ACTIONS_RUNTIME_URL", "") or f"http://{addr}:{port}/"
    env["ACTIONS_RUNTIME_TOKEN"] = source.get("ACTIONS_RUNTIME_TOKEN", "") or "token"
    return env


def github_env(
    github: GithubContext,
    env: dict[str, str],
    github_instance: str = "github.com",
    runs_on: Sequence[str] | None = None,
    interpolate: Callable[[str], str] | None = None,
    artifact_server_path: str = "",
    artifact_server_addr: str = "",
    artifact_server_port: str = "",
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Add the ``GITHUB_*`` and runner variables to ``env`` and return it."""
    env.update({
        "CI": "true",
        "GITHUB_WORKFLOW": github.workflow,
        "GITHUB_RUN_ID": github.run_id,
        "GITHUB_RUN_NUMBER": github.run_number,
        "GITHUB_ACTION": github.action,
        "GITHUB_ACTION_PATH": github.action_path,
        "GITHUB_ACTION_REPOSITORY": github.action_repository,
        "GITHUB_ACTION_REF": github.action_ref,
        "GITHUB_ACTIONS": "true",
        "GITHUB_ACTOR": github.actor,
        "GITHUB_REPOSITORY": github.repository,
        "GITHUB_EVENT_NAME": github.event_name,
        "GITHUB_EVENT_PATH": github.event_path,
        "GITHUB_WORKSPACE": github.workspace,
        "GITHUB_SHA": github.sha,
        "GITHUB_REF": github.ref,
        "GITHUB_REF_NAME": github.ref_name,
        "GITHUB_REF_TYPE": github.ref_type,
        "GITHUB_TOKEN": github.token,
        "GITHUB_JOB": github.job,
        "GITHUB_REPOSITORY_OWNER": github.repository_owner,
        "GITHUB_RETENTION_DAYS": github.retention_days,
        "RUNNER_PERFLOG": github.runner_perflog,
        "RUNNER_TRACKING_ID": github.runner_tracking_id,
        "GITHUB_BASE_REF": github.base_ref,
        "GITHUB_HEAD_REF": github.head_ref,
    })

    if github_instance == "github.com":
        server_url = "https://github.com"
        api_url = "https://api.github.com"
        graphql_url = "https://api.github.com/graphql"
    else:
        server_url = f"https://{github_instance}"
        api_url = f"https://{github_instance}/api/v3"
        graphql_url = f"https://{github_instance}/api/graphql"

    for key, default in (("GITHUB_SERVER_URL", server_url),
                         ("GITHUB_API_URL", api_url),
                         ("GITHUB_GRAPHQL_URL", graphql_url)):
        if not env.get(key):
            env[key] = default

    if artifact_server_path:
        action_runtime_vars(env, artifact_server_addr, artifact_server_port, environ)

    for label in runs_on or ():
        platform_name = interpolate(label) if interpolate is not None else label
        name = image_os(platform_name)
        if name:
            env["ImageOS"] = name
    return env


def nested_map_lookup(mapping: Mapping[str, Any], *args: str) -> Any:
    """Follow a path of keys through nested mappings; None when any step is missing."""
    if not args:
        return None
    value: Any = mapping
    for key in args:
        if not isinstance(value, Mapping) or key not in value:
            return None
        value = value[key]
    return value


def merge_maps(*args: Mapping[str, str]) -> dict[str, str]:
    """Merge mappings into a new dict; later mappings win."""
    merged: dict[str, str] = {}
    for mapping in args:
        merged.update(mapping)
    return merged


def container_credentials(
    credentials: Mapping[str, str] | None,
    secrets: Mapping[str, str],
    interpolate: Callable[[str], str] | None = None,
) -> tuple[str, str]:
    """Return the registry username and password for a job container."""
    username = secrets.get("DOCKER_USERNAME", "")
    password = secrets.get("DOCKER_PASSWORD", "")
    if credentials is None:
        return username, password
    if len(credentials) != 2:
        raise CredentialsError("invalid property count for key 'credentials:'")
    raw_username = credentials.get("username", "")
    raw_password = credentials.get("password", "")
    username = interpolate(raw_username) if interpolate is not None else raw_username
    if not username:
        raise CredentialsError("failed to interpolate container.credentials.username")
    password = interpolate(raw_password) if interpolate is not None else raw_password
    if not password:
        raise CredentialsError("failed to interpolate container.credentials.password")
    if not raw_username or not raw_password:
        raise CredentialsError("container.credentials cannot be empty")
    return username, password


def job_status(step_conclusions: Iterable[str]) -> str:
    """``failure`` when any step concluded with a failure, otherwise ``success``."""
    for conclusion in step_conclusions:
        if conclusion == "failure":
            return "failure"
    return "success"