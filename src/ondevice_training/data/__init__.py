"""Data pipeline for ondevice_training."""

from ondevice_training.data.batches import BatchStream, batches
from ondevice_training.data.reader import SplitReader, parse_labels, parse_manifest
from ondevice_training.data.source import SampleSource
from ondevice_training.data.transforms import (
    build_sample_transform,
    bytes_to_vector,
    normalize_pixel,
    normalize_pixels,
)

__all__ = [
    "BatchStream",
    "SampleSource",
    "SplitReader",
    "batches",
    "build_sample_transform",
    "bytes_to_vector",
    "normalize_pixel",
    "normalize_pixels",
    "parse_labels",
    "parse_manifest",
]
