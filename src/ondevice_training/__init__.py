"""Batched train/evaluate control loop for ONNX Runtime training sessions."""

__version__ = "0.0.1"
