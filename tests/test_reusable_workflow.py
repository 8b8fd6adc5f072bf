import pytest

from actrunner.reusable_workflow import (
    RemoteReusableWorkflow,
    ReusableWorkflowFormatError,
    local_workflow_path,
    parse_remote_reusable_workflow,
    require_remote_reusable_workflow,
)


def test_parse_remote_reference():
    workflow = parse_remote_reusable_workflow("owner/repo/.github/workflows/build.yml@v1")
    assert workflow == RemoteReusableWorkflow(
        url="github.com", org="owner", repo="repo", filename="build.yml", ref="v1"
    )


def test_parse_ref_may_contain_slashes():
    workflow = parse_remote_reusable_workflow("owner/repo/.github/workflows/ci.yml@refs/heads/main")
    assert workflow.ref == "refs/heads/main"
    assert workflow.filename == "ci.yml"


@pytest.mark.parametrize(
    "uses",
    ["owner/repo@v1", "owner/repo/.github/workflows/build.yml", "./.github/workflows/local.yml", ""],
)
def test_parse_rejects_invalid(uses):
    assert parse_remote_reusable_workflow(uses) is None


def test_clone_url():
    workflow = parse_remote_reusable_workflow("org/repo/.github/workflows/x.yml@main")
    assert workflow.clone_url() == "https://github.com/org/repo"


def test_require_sets_instance():
    workflow = require_remote_reusable_workflow(
        "org/repo/.github/workflows/x.yml@main", "ghe.example.com"
    )
    assert workflow.url == "ghe.example.com"
    assert workflow.clone_url() == "https://ghe.example.com/org/repo"


def test_require_raises_on_bad_format():
    with pytest.raises(ReusableWorkflowFormatError, match="Actual 'org/repo@main'"):
        require_remote_reusable_workflow("org/repo@main", "github.com")


def test_local_workflow_path():
    assert local_workflow_path("./.github/workflows/local.yml") == "./.github/workflows/local.yml"
    workflow = parse_remote_reusable_workflow("org/repo/.github/workflows/build.yml@v2")
    path = local_workflow_path(workflow.filename and "unused", workflow.filename)
    assert path.endswith("/" + workflow.filename)
    assert path.startswith("./.github/workflows/")