"""Building blocks for running CI workflow jobs: expressions, logging, containers, steps and the job pipeline."""

__version__ = "0.1.0"