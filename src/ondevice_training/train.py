"""Training entrypoint for ondevice_training.

Usage:
    ondevice-train data_root=/data/mnist                 # defaults
    ondevice-train data_root=/data/mnist batch_size=16   # override batch size
    ondevice-train data_root=/data/mnist num_epochs=10   # override epochs
    ondevice-train data_root=/data/mnist artifacts_dir=/models/mnist
"""

import asyncio
import sys
from typing import Any

import hydra
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from ondevice_training.config import SessionArtifacts, TrainingConfig
from ondevice_training.reporting.board import StatusBoard
from ondevice_training.reporting.console import ConsoleDisplay
from ondevice_training.reporting.history import HistoryWriter
from ondevice_training.state import RunPhase
from ondevice_training.supervisor import TrainingSupervisor

# Keys consumed by the entrypoint itself, not part of TrainingConfig.
CLI_KEYS = ("log_level", "output_dir", "save_history", "artifacts_dir")


def build_config(cfg: DictConfig) -> TrainingConfig:
    """Validate the composed Hydra config into a TrainingConfig.

    When ``artifacts_dir`` is set, relative artifact paths are anchored on it.
    """
    container: Any = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
    values = {k: v for k, v in container.items() if k not in CLI_KEYS}
    config = TrainingConfig(**values)
    artifacts_dir = cfg.get("artifacts_dir")
    if artifacts_dir:
        artifacts: SessionArtifacts = config.artifacts.resolve(artifacts_dir)
        config = config.model_copy(update={"artifacts": artifacts})
    return config


@hydra.main(version_base=None, config_path="conf", config_name="train")
def main(cfg: DictConfig) -> None:
    """Run one training session with the given Hydra config."""
    # Setup logging
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))

    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    config = build_config(cfg)

    display = ConsoleDisplay()
    board = StatusBoard()
    board.add_listener(display)

    supervisor = TrainingSupervisor(config, board=board)
    state = asyncio.run(supervisor.run())

    display.print_history(supervisor.history)

    if cfg.get("save_history", False):
        writer = HistoryWriter(cfg.get("output_dir", "outputs"))
        summary_path = writer.write_summary(board, state)
        logger.info(f"Run summary written to {summary_path}")
        writer.plot(board)

    if state.phase is RunPhase.FAILED:
        sys.exit(1)


if __name__ == "__main__":
    main()
