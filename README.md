# actrunner

`actrunner` is a library of building blocks for running CI workflow jobs on
your own machine. It has no dependencies outside the standard library.

## Modules

### `actrunner.expression`

Parses and evaluates `${{ ... }}` expressions.

- `Interpreter(contexts, working_dir=".", context="job")` evaluates an
  expression against named contexts (`github`, `env`, `job`, `steps`,
  `secrets`, `matrix`, `needs`, `inputs`, ...). It supports the `==`, `!=`,
  `<`, `<=`, `>`, `>=`, `!`, `&&`, `||` operators, property and index access,
  `.*` filters, and the functions `contains`, `startsWith`, `endsWith`,
  `format`, `join`, `toJSON`, `fromJSON`, `hashFiles`, `success`, `failure`,
  `always` and `cancelled`. Property and function names are case-insensitive.
- `ExpressionEvaluator(interpreter)` offers `evaluate(expression,
  default_status_check)`, `interpolate(text)` (returns `""` when the expression
  cannot be evaluated, and raises `TypeError` when it does not yield a string)
  and `evaluate_tree(value)`, which returns a copy of a parsed YAML value with
  its expressions evaluated, merging `${{ insert }}` keys and nested lists.
- `eval_bool(evaluator, expression, default_status_check)` returns the
  truthiness of an expression, as used for `if:` conditions.
- `rewrite_sub_expression(text, force_format)` turns text with embedded
  expressions into a single `format(...)` call; `escape_format_string(text)`
  doubles braces.
- `DefaultStatusCheck` selects the status function applied when an expression
  calls none; `ExpressionError` is raised for invalid expressions.

```python
from actrunner.expression import (
    DefaultStatusCheck, ExpressionEvaluator, Interpreter, eval_bool,
    rewrite_sub_expression,
)

rewrite_sub_expression("Hello ${{ 'World' }}", False)
# "format('Hello {0}', 'World')"

evaluator = ExpressionEvaluator(Interpreter({"env": {"NAME": "world"}}))
evaluator.interpolate("Hello ${{ env.NAME }}")   # "Hello world"
eval_bool(evaluator, "env.NAME == 'world'", DefaultStatusCheck.SUCCESS)  # True
```

### `actrunner.logger`

- `job_logger(job_id, job_name, masks, matrix, secrets, insecure_secrets=False,
  json_logger=False, dryrun=False, stream=None)` returns a logger adapter that
  writes to `stream` (standard output by default), prefixes lines with the job
  name, marks dry runs, and replaces secret values and masks with `***`.
- `step_logger(logger, step_id, step_name, stage_name)` and
  `composite_step_logger(logger, step_id)` derive loggers carrying step fields.
- `JobLogFormatter` colours output when the stream is a terminal, honouring
  `CLICOLOR_FORCE` and `CLICOLOR`; `is_colored(stream)` makes that decision and
  `next_color()` rotates through the job colours.
- `MaskingFilter` and `mask_message(message, secrets, masks, insecure_secrets)`
  do the masking.

### `actrunner.config`

- `Config` holds the runner settings (workdir, event, platforms, secrets,
  container options, GitHub instance and so on).
- `load_event_json(config)` returns the event file's contents, the manual
  inputs as `{"inputs": ...}`, or `"{}"`.
- `handle_failure(stages)` raises `JobFailedError` for the first `JobRun`
  whose result is `failure`.
- `max_parallel(matrix_count, strategy_max_parallel)` and
  `matrix_job_name(name, index, matrix_count)` help schedule matrix builds.

### `actrunner.reusable_workflow`

- `parse_remote_reusable_workflow(uses)` parses
  `{owner}/{repo}/.github/workflows/{filename}@{ref}` into a
  `RemoteReusableWorkflow`, or returns `None`.
- `require_remote_reusable_workflow(uses, github_instance)` does the same for
  a given instance and raises `ReusableWorkflowFormatError` when malformed.
- `local_workflow_path(uses, filename=None)` gives the workflow path within
  its repository.

```python
from actrunner.reusable_workflow import require_remote_reusable_workflow

wf = require_remote_reusable_workflow(
    "org/repo/.github/workflows/ci.yml@main", "git.example.com"
)
wf.clone_url()  # "https://git.example.com/org/repo"
```

### `actrunner.containers`

- `create_container_name(*parts)` and `job_container_name(workflow_name,
  run_name, caller_job_id=None)` build safe, hash-suffixed container names.
- `binds_and_mounts(...)` returns the host binds and named volume mounts of a
  job container.
- `action_cache_dir(environ=None)`, `is_host_environment(image)`,
  `platform_image(container_image, runs_on, platforms, interpolate)`,
  `job_container_env(arch)` and `trim_to_len(text, length)`.

### `actrunner.github_env`

- `GithubContext` holds the `github` context; `apply_defaults()` fills run id,
  run number, retention days, perflog and actor.
- `github_env(github, env, ...)` adds the `GITHUB_*`, runner and `ImageOS`
  variables to an environment; `action_runtime_vars` and `image_os` are the
  pieces it uses.
- `container_credentials(credentials, secrets, interpolate=None)` returns a
  registry username and password or raises `CredentialsError`.
- `nested_map_lookup`, `merge_maps` and `job_status` are small helpers.

### `actrunner.step`

- `StepStage` (`Pre`, `Main`, `Post`), `StepStatus` and `StepResult`.
- `merge_into_map(target, *maps)`, `file_command_paths(act_path)` and
  `interpolate_step_env(env, evaluator, input_evaluator=None)`.
- `is_step_enabled(evaluator, expression, stage)` and
  `is_continue_on_error(evaluator, expression)` evaluate a step's `if` and
  `continue-on-error` values.

### `actrunner.job_executor`

`new_job_executor(info, step_factory, auto_remove=False)` builds a
`JobExecutor` for a `JobInfo`; a missing step model gives an
`InvalidStepError` when run. `JobExecutor.run()` starts the container, runs
every pre stage, then every main stage, then the post stages in reverse order,
stops the container (when `auto_remove` is set or no step failed), records the
result given by `job_result(matrix, previous_result, success)`, interpolates
the outputs and closes the container. Step failures are recorded as the job's
failure rather than raised.

## What the package does not do

`actrunner` does not talk to a container engine, clone repositories, read or
plan workflow files, or execute step commands. Those are supplied by the
caller through the `JobInfo` and `Step` protocols and the callables passed to
the helpers. There is no command-line tool.

## Installation

```sh
pip install .
```

## Running the tests

```sh
pip install ".[test]"
pytest
```