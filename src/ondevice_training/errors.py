"""Error taxonomy for data loading, engine steps and run lifecycle."""

from __future__ import annotations

from ondevice_training.types import Phase


class TrainingError(Exception):
    """Base class for every failure that ends a training run."""


class ManifestUnavailable(TrainingError):
    """The file listing for a split could not be read."""

    def __init__(self, split: str, cause: BaseException | None = None) -> None:
        self.split = split
        self.cause = cause
        super().__init__(f"Manifest for split '{split}' is unavailable: {cause}")


class LabelsUnavailable(TrainingError):
    """The labels file for a split could not be read."""

    def __init__(self, split: str, cause: BaseException | None = None) -> None:
        self.split = split
        self.cause = cause
        super().__init__(f"Labels for split '{split}' are unavailable: {cause}")


class SampleUnavailable(TrainingError):
    """A single sample was missing or could not be converted."""

    def __init__(
        self, split: str, index: int, cause: BaseException | None = None
    ) -> None:
        self.split = split
        self.index = index
        self.cause = cause
        super().__init__(
            f"Sample {index} of split '{split}' is unavailable: {cause}"
        )


class EngineStepFailed(TrainingError):
    """The engine raised while processing a batch; the pass is aborted."""

    def __init__(self, phase: Phase, batch_index: int, cause: BaseException) -> None:
        self.phase = phase
        self.batch_index = batch_index
        self.cause = cause
        super().__init__(
            f"Engine step failed during {phase.value} at batch {batch_index}: {cause}"
        )


class SessionLoadFailed(TrainingError):
    """The engine session could not be created from its artifacts."""

    def __init__(self, cause: BaseException | str) -> None:
        self.cause = cause
        super().__init__(f"Error loading the training session: {cause}")


class RunAlreadyActive(TrainingError):
    """A start request arrived while another run is still in flight."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name = phase_name
        super().__init__(
            f"Cannot start a new run while the current one is {phase_name}"
        )
