from dataclasses import dataclass

import pytest

from actrunner.job_executor import (
    InvalidStepError,
    JobExecutor,
    job_result,
    new_job_executor,
)


@dataclass
class StepModel:
    id: str = ""


class FakeJob:
    def __init__(self, steps, matrix=None, previous="", fail_start=False, fail_stop=False):
        self._steps = steps
        self._matrix = matrix if matrix is not None else {}
        self.previous = previous
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.order = []
        self.results = []

    def matrix(self):
        return self._matrix

    def steps(self):
        return self._steps

    def start_container(self):
        self.order.append("startContainer")
        if self.fail_start:
            raise RuntimeError("start failed")

    def stop_container(self):
        self.order.append("stopContainer")
        if self.fail_stop:
            raise RuntimeError("stop failed")

    def close_container(self):
        self.order.append("closeContainer")

    def interpolate_outputs(self):
        self.order.append("interpolateOutputs")

    def set_result(self, result):
        self.results.append(result)

    def current_result(self):
        return self.previous


class FakeStep:
    def __init__(self, model, order, has_pre, has_post, fail=False, post_error=None):
        self.model = model
        self.order = order
        self.has_pre = has_pre
        self.has_post = has_post
        self.fail = fail
        self.post_error = post_error

    def pre(self):
        if self.has_pre:
            self.order.append("pre" + self.model.id)

    def main(self):
        self.order.append("step" + self.model.id)
        if self.fail:
            raise RuntimeError("error")

    def post(self):
        if self.has_post:
            self.order.append("post" + self.model.id)
        if self.post_error is not None:
            raise self.post_error


CASES = [
    ("zeroSteps", [], [], [], [], None, False),
    ("stepWithoutPrePost", ["1"], [False], [False],
     ["startContainer", "step1", "stopContainer", "interpolateOutputs", "closeContainer"],
     "success", False),
    ("stepWithFailure", ["1"], [False], [False],
     ["startContainer", "step1", "interpolateOutputs", "closeContainer"],
     "failure", True),
    ("stepWithPre", ["1"], [True], [False],
     ["startContainer", "pre1", "step1", "stopContainer", "interpolateOutputs", "closeContainer"],
     "success", False),
    ("stepWithPost", ["1"], [False], [True],
     ["startContainer", "step1", "post1", "stopContainer", "interpolateOutputs", "closeContainer"],
     "success", False),
    ("stepWithPreAndPost", ["1"], [True], [True],
     ["startContainer", "pre1", "step1", "post1", "stopContainer", "interpolateOutputs",
      "closeContainer"],
     "success", False),
    ("stepsWithPreAndPost", ["1", "2", "3"], [True, False, True], [False, True, True],
     ["startContainer", "pre1", "pre3", "step1", "step2", "step3", "post3", "post2",
      "stopContainer", "interpolateOutputs", "closeContainer"],
     "success", False),
]


@pytest.mark.parametrize(
    "name,ids,pre_steps,post_steps,executed,result,has_error",
    CASES,
    ids=[case[0] for case in CASES],
)
def test_new_job_executor(name, ids, pre_steps, post_steps, executed, result, has_error):
    models = [StepModel(step_id) for step_id in ids]
    job = FakeJob(models)
    flags = {m.id: (pre, post) for m, pre, post in zip(models, pre_steps, post_steps)}

    def factory(model):
        pre, post = flags[model.id]
        return FakeStep(model, job.order, pre, post, fail=has_error)

    executor = new_job_executor(job, factory)
    executor.run()

    assert job.order == executed
    assert job.results == ([] if result is None else [result])


def test_nil_step_raises_invalid_step():
    job = FakeJob([None])
    executor = new_job_executor(job, lambda model: FakeStep(model, job.order, False, False))
    with pytest.raises(InvalidStepError, match="invalid Step 0: missing run or uses key"):
        executor.run()
    assert job.order == []


def test_nil_step_after_valid_step_reports_its_index():
    job = FakeJob([StepModel("a"), None])
    executor = new_job_executor(job, lambda model: FakeStep(model, job.order, False, False))
    with pytest.raises(InvalidStepError, match="invalid Step 1"):
        executor.run()


def test_missing_step_ids_are_numbered():
    models = [StepModel(), StepModel("named"), StepModel()]
    job = FakeJob(models)
    new_job_executor(job, lambda model: FakeStep(model, job.order, False, False)).run()
    assert [m.id for m in models] == ["0", "named", "2"]
    assert job.order[1:4] == ["step0", "stepnamed", "step2"]


def test_step_factory_error_is_raised_on_run():
    job = FakeJob([StepModel("1")])

    def factory(model):
        raise ValueError("bad step")

    executor = new_job_executor(job, factory)
    with pytest.raises(ValueError, match="bad step"):
        executor.run()
    assert job.order == []


def test_failure_with_auto_remove_stops_container():
    job = FakeJob([StepModel("1")])
    executor = new_job_executor(
        job, lambda model: FakeStep(model, job.order, False, False, fail=True), auto_remove=True
    )
    executor.run()
    assert "stopContainer" in job.order
    assert job.results == ["failure"]
    assert str(executor.job_error) == "error"


def test_start_failure_skips_everything_else():
    job = FakeJob([StepModel("1")], fail_start=True)
    executor = new_job_executor(job, lambda model: FakeStep(model, job.order, True, True))
    with pytest.raises(RuntimeError, match="start failed"):
        executor.run()
    assert job.order == ["startContainer"]
    assert job.results == []


def test_post_error_still_runs_remaining_posts_and_cleanup():
    models = [StepModel("1"), StepModel("2")]
    job = FakeJob(models)

    def factory(model):
        error = RuntimeError("post failed") if model.id == "2" else None
        return FakeStep(model, job.order, False, True, post_error=error)

    executor = new_job_executor(job, factory)
    with pytest.raises(RuntimeError, match="post failed"):
        executor.run()
    assert job.order == ["startContainer", "step1", "step2", "post2", "post1",
                         "stopContainer", "interpolateOutputs", "closeContainer"]
    assert job.results == ["success"]


def test_stop_container_error_propagates_after_result_set():
    job = FakeJob([StepModel("1")], fail_stop=True)
    executor = new_job_executor(job, lambda model: FakeStep(model, job.order, False, False))
    with pytest.raises(RuntimeError, match="stop failed"):
        executor.run()
    assert job.results == ["success"]
    assert job.order[-2:] == ["interpolateOutputs", "closeContainer"]


def test_matrix_keeps_previous_result():
    job = FakeJob([StepModel("1")], matrix={"os": "linux"}, previous="failure")
    new_job_executor(job, lambda model: FakeStep(model, job.order, False, False)).run()
    assert job.results == ["failure"]


def test_run_with_no_steps_does_nothing():
    job = FakeJob([])
    executor = JobExecutor(job)
    executor.run()
    assert job.order == []
    assert job.results == []


@pytest.mark.parametrize(
    "matrix,previous,success,expected",
    [
        ({}, "", True, "success"),
        ({}, "failure", True, "success"),
        ({"os": "linux"}, "failure", True, "failure"),
        ({"os": "linux"}, "", True, "success"),
        ({"os": "linux"}, "success", False, "failure"),
        ({}, "", False, "failure"),
        (None, "failure", True, "success"),
    ],
)
def test_job_result(matrix, previous, success, expected):
    assert job_result(matrix, previous, success) == expected