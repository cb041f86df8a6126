"""Tests for ORTTrainingEngine with a stubbed onnxruntime.training.api."""

from __future__ import annotations

import asyncio
import sys
import types
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from ondevice_training.config import SessionArtifacts
from ondevice_training.engine.ort_engine import (
    GraphSignature,
    ORTTrainingEngine,
    resolve_signature,
)
from ondevice_training.errors import SessionLoadFailed

LOSS = "onnx::loss::8"


class _FakeModule:
    """Mimics onnxruntime.training.api.Module: signature depends on mode."""

    def __init__(self, train_model, state, eval_model, device="cpu") -> None:
        self.args = (train_model, state, eval_model)
        self.device = device
        self.training = True
        self.reset_count = 0
        self.inputs: list[tuple[np.ndarray, ...]] = []

    def train(self) -> None:
        self.training = True

    def eval(self) -> None:
        self.training = False

    def input_names(self) -> list[str]:
        return ["input", "labels"]

    def output_names(self) -> list[str]:
        return [LOSS] if self.training else [LOSS, "output"]

    def __call__(self, *inputs: np.ndarray):
        self.inputs.append(inputs)
        if self.training:
            return np.array(0.25, dtype=np.float32)
        labels = inputs[1]
        return [np.array(0.75, dtype=np.float32), np.eye(3)[labels]]

    def lazy_reset_grad(self) -> None:
        self.reset_count += 1


class _OutputFirstModule(_FakeModule):
    """Eval graph that lists the scores before the loss."""

    def output_names(self) -> list[str]:
        return [LOSS] if self.training else ["output", LOSS]

    def __call__(self, *inputs: np.ndarray):
        result = super().__call__(*inputs)
        return result if self.training else [result[1], result[0]]


def _fake_api() -> types.ModuleType:
    api = types.ModuleType("onnxruntime.training.api")
    api.CheckpointState = MagicMock()
    api.CheckpointState.load_checkpoint.return_value = "state"
    api.Module = _FakeModule
    api.Optimizer = MagicMock()
    return api


def _batch() -> dict[str, np.ndarray]:
    return {
        "inputs": np.zeros((2, 4), dtype=np.float32),
        "labels": np.array([2, 0], dtype=np.int64),
    }


class TestResolveSignature:
    def test_train_graph(self) -> None:
        sig = resolve_signature(["input", "labels"], [LOSS], LOSS)
        assert sig == GraphSignature(("input", "labels"), loss_index=0)

    def test_eval_graph_output_position(self) -> None:
        sig = resolve_signature(["labels", "input"], ["output", LOSS], LOSS, "output")
        assert sig.feed_order == ("labels", "input")
        assert sig.loss_index == 1
        assert sig.output_index == 0

    def test_unknown_input(self) -> None:
        with pytest.raises(ValueError, match="unsupported inputs"):
            resolve_signature(["input", "mask"], [LOSS], LOSS)

    def test_missing_loss(self) -> None:
        with pytest.raises(ValueError, match="loss output"):
            resolve_signature(["input"], ["other"], LOSS)

    def test_missing_output(self) -> None:
        with pytest.raises(ValueError, match="'output'"):
            resolve_signature(["input"], [LOSS], LOSS, "output")


class TestORTTrainingEngine:
    @pytest.fixture()
    def engine(self) -> ORTTrainingEngine:
        api = _fake_api()
        with (
            patch.dict(sys.modules, {"onnxruntime.training.api": api}),
            patch(
                "ondevice_training.engine.ort_engine.ort.get_available_providers",
                return_value=["CPUExecutionProvider"],
            ),
        ):
            engine = asyncio.run(ORTTrainingEngine.create(SessionArtifacts(), LOSS))
        api.CheckpointState.load_checkpoint.assert_called_once_with("checkpoint")
        return engine

    def test_create_resolves_signatures(self, engine: ORTTrainingEngine) -> None:
        assert engine.train_signature.loss_index == 0
        assert engine.train_signature.output_index is None
        assert engine.eval_signature.output_index == 1
        assert engine._module.device == "cpu"
        assert engine._module.args == (
            "training_model.onnx",
            "state",
            "eval_model.onnx",
        )

    def test_train_step(self, engine: ORTTrainingEngine) -> None:
        result = asyncio.run(engine.run_train_step(_batch()))
        assert result.loss == 0.25
        assert engine._module.training is True
        fed_inputs, fed_labels = engine._module.inputs[-1]
        assert fed_inputs.shape == (2, 4)
        np.testing.assert_array_equal(fed_labels, [2, 0])

    def test_eval_step(self, engine: ORTTrainingEngine) -> None:
        result = asyncio.run(engine.run_eval_step(_batch()))
        assert result.loss == 0.75
        assert engine._module.training is False
        assert result.predictions.shape == (2, 3)

    def test_optimizer_and_reset(self, engine: ORTTrainingEngine) -> None:
        asyncio.run(engine.run_optimizer_step())
        asyncio.run(engine.reset_gradients())
        engine._optimizer.step.assert_called_once()
        assert engine._module.reset_count == 1

    def test_missing_training_api(self) -> None:
        with patch.dict(sys.modules, {"onnxruntime.training.api": None}):
            with pytest.raises(SessionLoadFailed, match="onnxruntime-training"):
                asyncio.run(ORTTrainingEngine.create(SessionArtifacts(), LOSS))

    def test_wrong_loss_name(self) -> None:
        with patch.dict(sys.modules, {"onnxruntime.training.api": _fake_api()}):
            with pytest.raises(SessionLoadFailed) as exc_info:
                asyncio.run(ORTTrainingEngine.create(SessionArtifacts(), "loss"))
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_checkpoint_load_error(self) -> None:
        api = _fake_api()
        api.CheckpointState.load_checkpoint.side_effect = RuntimeError("bad file")
        with patch.dict(sys.modules, {"onnxruntime.training.api": api}):
            with pytest.raises(SessionLoadFailed, match="bad file"):
                asyncio.run(ORTTrainingEngine.create(SessionArtifacts(), LOSS))

    def test_eval_scores_at_first_output(self) -> None:
        api = _fake_api()
        api.Module = _OutputFirstModule
        with patch.dict(sys.modules, {"onnxruntime.training.api": api}):
            engine = asyncio.run(ORTTrainingEngine.create(SessionArtifacts(), LOSS))
        assert engine.eval_signature.output_index == 0
        assert engine.eval_signature.loss_index == 1
        result = asyncio.run(engine.run_eval_step(_batch()))
        assert result.loss == 0.75
        np.testing.assert_array_equal(result.predictions, np.eye(3)[[2, 0]])
