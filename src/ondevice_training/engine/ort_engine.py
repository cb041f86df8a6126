"""ONNX Runtime on-device training engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import numpy as np
import onnxruntime as ort
from loguru import logger

from ondevice_training.config import SessionArtifacts
from ondevice_training.engine.base import (
    FEED_INPUT,
    FEED_LABELS,
    EvalStepResult,
    TrainingEngine,
    TrainStepResult,
)
from ondevice_training.errors import SessionLoadFailed
from ondevice_training.types import Batch


@dataclass(frozen=True)
class GraphSignature:
    """Input order and output positions of one graph, resolved once."""

    feed_order: tuple[str, ...]
    loss_index: int
    output_index: int | None = None


def resolve_signature(
    input_names: list[str],
    output_names: list[str],
    loss_node_name: str,
    output_node_name: str | None = None,
) -> GraphSignature:
    """Map the named feeds/results onto a graph's positional signature.

    Raises:
        ValueError: A graph input is not one of the known feeds, or a
            requested output is missing.
    """
    unknown = [n for n in input_names if n not in (FEED_INPUT, FEED_LABELS)]
    if unknown:
        raise ValueError(f"graph expects unsupported inputs {unknown}")
    if loss_node_name not in output_names:
        raise ValueError(
            f"loss output '{loss_node_name}' not in graph outputs {output_names}"
        )
    output_index = None
    if output_node_name is not None:
        if output_node_name not in output_names:
            raise ValueError(
                f"output '{output_node_name}' not in graph outputs {output_names}"
            )
        output_index = output_names.index(output_node_name)
    return GraphSignature(
        feed_order=tuple(input_names),
        loss_index=output_names.index(loss_node_name),
        output_index=output_index,
    )


def _as_list(outputs: Any) -> list[np.ndarray]:
    """Module.__call__ unwraps single outputs; normalise to a list."""
    if isinstance(outputs, (list, tuple)):
        return list(outputs)
    return [outputs]


class ORTTrainingEngine(TrainingEngine):
    """Drive an ``onnxruntime.training.api`` Module/Optimizer pair.

    Build with :meth:`create`.  Graph signatures for the train and eval
    graphs are resolved at construction, so each step reads its loss and
    predictions by position instead of looking up names per call.  Every
    call runs in a worker thread so the event loop stays responsive.

    Args:
        module: Loaded ``onnxruntime.training.api.Module``.
        optimizer: ``onnxruntime.training.api.Optimizer`` bound to ``module``.
        train_signature: Resolved signature of the training graph.
        eval_signature: Resolved signature of the evaluation graph.
    """

    def __init__(
        self,
        module: Any,
        optimizer: Any,
        train_signature: GraphSignature,
        eval_signature: GraphSignature,
    ) -> None:
        self._module = module
        self._optimizer = optimizer
        self.train_signature = train_signature
        self.eval_signature = eval_signature

    @classmethod
    async def create(
        cls,
        artifacts: SessionArtifacts,
        loss_node_name: str,
        output_node_name: str = "output",
    ) -> ORTTrainingEngine:
        """Load checkpoint, training, eval and optimizer graphs.

        Raises:
            SessionLoadFailed: The training API is not installed, an artifact
                cannot be loaded, or the graphs do not expose the expected
                feeds and outputs.
        """
        try:
            return await asyncio.to_thread(
                cls._load, artifacts, loss_node_name, output_node_name
            )
        except SessionLoadFailed:
            raise
        except Exception as exc:
            raise SessionLoadFailed(exc) from exc

    @classmethod
    def _load(
        cls,
        artifacts: SessionArtifacts,
        loss_node_name: str,
        output_node_name: str,
    ) -> ORTTrainingEngine:
        try:
            from onnxruntime.training.api import CheckpointState, Module, Optimizer
        except ImportError as exc:
            raise SessionLoadFailed(
                "onnxruntime.training is not available; replace the onnxruntime "
                "wheel with onnxruntime-training"
            ) from exc

        providers = ort.get_available_providers()
        device = "cuda" if "CUDAExecutionProvider" in providers else "cpu"
        logger.info(
            f"Loading training session from {artifacts.checkpoint_path} on {device}"
        )
        state = CheckpointState.load_checkpoint(artifacts.checkpoint_path)
        module = Module(
            artifacts.train_model_path,
            state,
            artifacts.eval_model_path,
            device=device,
        )
        optimizer = Optimizer(artifacts.optimizer_model_path, module)

        module.train()
        train_signature = resolve_signature(
            list(module.input_names()), list(module.output_names()), loss_node_name
        )
        module.eval()
        eval_signature = resolve_signature(
            list(module.input_names()),
            list(module.output_names()),
            loss_node_name,
            output_node_name,
        )
        logger.debug(f"Train graph: {train_signature}, eval graph: {eval_signature}")
        return cls(module, optimizer, train_signature, eval_signature)

    async def run_train_step(self, batch: Batch) -> TrainStepResult:
        return await asyncio.to_thread(self._train_step, batch)

    async def run_optimizer_step(self) -> None:
        await asyncio.to_thread(self._optimizer.step)

    async def reset_gradients(self) -> None:
        await asyncio.to_thread(self._module.lazy_reset_grad)

    async def run_eval_step(self, batch: Batch) -> EvalStepResult:
        return await asyncio.to_thread(self._eval_step, batch)

    def _feeds(self, batch: Batch, signature: GraphSignature) -> list[np.ndarray]:
        named = {FEED_INPUT: batch["inputs"], FEED_LABELS: batch["labels"]}
        return [named[name] for name in signature.feed_order]

    def _train_step(self, batch: Batch) -> TrainStepResult:
        self._module.train()
        outputs = _as_list(self._module(*self._feeds(batch, self.train_signature)))
        loss = np.asarray(outputs[self.train_signature.loss_index])
        return TrainStepResult(loss=float(loss.reshape(-1)[0]))

    def _eval_step(self, batch: Batch) -> EvalStepResult:
        self._module.eval()
        outputs = _as_list(self._module(*self._feeds(batch, self.eval_signature)))
        loss = np.asarray(outputs[self.eval_signature.loss_index])
        predictions = np.asarray(outputs[self.eval_signature.output_index])
        return EvalStepResult(loss=float(loss.reshape(-1)[0]), predictions=predictions)
