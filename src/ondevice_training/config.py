"""Pydantic frozen configuration models for ondevice_training."""

from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, model_validator


class SessionArtifacts(BaseModel, frozen=True):
    """Paths of the four files an ONNX Runtime training session is built from.

    The paths are opaque to this package; they are handed to the engine
    unchanged.  Relative paths can be anchored with :meth:`resolve`.
    """

    checkpoint_path: str = "checkpoint"
    train_model_path: str = "training_model.onnx"
    eval_model_path: str = "eval_model.onnx"
    optimizer_model_path: str = "optimizer_model.onnx"

    def resolve(self, root: str | Path) -> "SessionArtifacts":
        """Return a copy with every relative path joined onto ``root``."""
        root = Path(root)

        def _anchor(path: str) -> str:
            p = Path(path)
            return str(p if p.is_absolute() else root / p)

        return SessionArtifacts(
            checkpoint_path=_anchor(self.checkpoint_path),
            train_model_path=_anchor(self.train_model_path),
            eval_model_path=_anchor(self.eval_model_path),
            optimizer_model_path=_anchor(self.optimizer_model_path),
        )


class ReporterConfig(BaseModel, frozen=True):
    """Throttling parameters for ProgressReporter.

    log_interval_ms: Minimum gap between two flushes toward the display.
    wait_after_logging_ms: Pause after each flush so the display can catch up.
    enable_live_logging: Publish the whole buffered backlog on flush instead
        of only the latest status line.
    """

    log_interval_ms: int = Field(default=1000, ge=0)
    wait_after_logging_ms: int = Field(default=500, ge=0)
    enable_live_logging: bool = False


class TrainingConfig(BaseModel, frozen=True):
    """Configuration for a TrainingSupervisor run.

    All fields are validated at construction time. Frozen, no mutation after creation.
    """

    data_root: str
    max_train_samples: int = Field(default=293, ge=0)
    max_test_samples: int = Field(default=73, ge=0)
    batch_size: int = Field(default=32, gt=0)
    num_epochs: int = Field(default=5, ge=0)
    loss_node_name: str = "onnx::loss::8"
    output_node_name: str = "output"
    normalize_pixels: bool = False
    decode_images: bool = False
    artifacts: SessionArtifacts = SessionArtifacts()
    reporter: ReporterConfig = ReporterConfig()

    @model_validator(mode="after")
    def _warn_on_empty_passes(self) -> "TrainingConfig":
        """A cap below batch_size means that pass runs zero batches."""
        for split, cap in (
            ("train", self.max_train_samples),
            ("test", self.max_test_samples),
        ):
            if cap < self.batch_size:
                logger.warning(
                    f"max_{split}_samples={cap} is below batch_size="
                    f"{self.batch_size}; the {split} pass will run zero batches"
                )
        return self
