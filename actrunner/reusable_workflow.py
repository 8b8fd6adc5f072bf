"""References to reusable workflows called from a job's ``uses`` key."""

from __future__ import annotations

import re
from dataclasses import dataclass

_REMOTE_WORKFLOW = re.compile(r"([^/]+)/([^/]+)/.github/workflows/([^@]+)@(.*)")


class ReusableWorkflowFormatError(ValueError):
    """Raised when a remote reusable workflow reference is malformed."""


@dataclass
class RemoteReusableWorkflow:
    """A workflow file in another repository at a given ref."""

    url: str
    org: str
    repo: str
    filename: str
    ref: str

    def clone_url(self) -> str:
        return f"https://{self.url}/{self.org}/{self.repo}"


def parse_remote_reusable_workflow(uses: str) -> RemoteReusableWorkflow | None:
    """Parse ``{owner}/{repo}/.github/workflows/{filename}@{ref}``, or return None."""
    match = _REMOTE_WORKFLOW.fullmatch(uses)
    if match is None:
        return None
    org, repo, filename, ref = match.groups()
    return RemoteReusableWorkflow(url="github.com", org=org, repo=repo, filename=filename, ref=ref)


def require_remote_reusable_workflow(uses: str, github_instance: str) -> RemoteReusableWorkflow:
    """Parse a remote reference for the given GitHub instance, raising when malformed."""
    workflow = parse_remote_reusable_workflow(uses)
    if workflow is None:
        raise ReusableWorkflowFormatError(
            "expected format {owner}/{repo}/.github/workflows/{filename}@{ref}. "
            f"Actual '{uses}' Input string was not in a correct format"
        )
    workflow.url = github_instance
    return workflow


def local_workflow_path(uses: str, filename: str | None = None) -> str:
    """Workflow path within its repository: ``uses`` locally, the workflows entry remotely."""
    if filename is not None:
        return f"./.github/workflows/{filename}"
    return uses