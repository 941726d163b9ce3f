import time

import numpy as np
import pytest

from depth_relief.models.base_estimator import BaseEstimator


class RedChannelEstimator(BaseEstimator):
    """Fake backend: the 'depth' is the red channel of the input."""

    def __init__(self, model_path, input_size, **kwargs):
        super().__init__(input_size)
        self.model_path = model_path
        self.calls = 0

    def run(self, tensor):
        self.calls += 1
        return tensor[:, 0, :, :].copy()


def red_factory(model_path, input_size, **kwargs):
    return RedChannelEstimator(model_path, input_size, **kwargs)


def failing_factory(model_path, input_size, **kwargs):
    raise FileNotFoundError(f"no such model: {model_path}")


def wait_for(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_rgba(width, height, red=None):
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    if red is None:
        red = np.arange(width * height, dtype=np.uint32).reshape(height, width) % 256
    rgba[..., 0] = red
    rgba[..., 3] = 255
    return rgba.reshape(-1)


@pytest.fixture
def gradient_frame():
    """BGR frame whose red channel ramps left to right."""
    frame = np.zeros((32, 48, 3), dtype=np.uint8)
    frame[..., 2] = np.linspace(0, 255, 48, dtype=np.uint8)[None, :]
    return frame
