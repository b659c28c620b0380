"""Exceptions raised by the experimentation engine."""


class ExperimentError(Exception):
    """Base class for experiment engine errors."""


class ExperimentNotFound(ExperimentError, KeyError):
    """No experiment with the requested id."""

    def __init__(self, experiment_id: str):
        self.experiment_id = experiment_id
        super().__init__(f"Experiment not found: {experiment_id}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidExperimentConfig(ExperimentError, ValueError):
    """Experiment definition failed validation."""


class InvalidVariantWeights(InvalidExperimentConfig):
    """Variant weights are not integers summing to 100, or fewer than 2 variants."""


class LifecycleError(ExperimentError):
    """Operation not allowed in the experiment's current status."""

    def __init__(self, experiment_id: str, status: str, message: str):
        self.experiment_id = experiment_id
        self.status = status
        super().__init__(message)


class ExperimentNotRunnable(LifecycleError):
    def __init__(self, experiment_id: str, status: str):
        super().__init__(
            experiment_id,
            status,
            f"Cannot start experiment {experiment_id}: current status is {status}",
        )


class ExperimentNotStoppable(LifecycleError):
    def __init__(self, experiment_id: str, status: str):
        super().__init__(
            experiment_id,
            status,
            f"Cannot stop experiment {experiment_id}: current status is {status}",
        )
