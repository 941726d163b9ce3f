import time

import numpy as np

from depth_relief.errors import InferenceFailure

_SCALE = np.float32(1.0 / 255.0)


def rgba_to_planar(rgba, width, height, out=None):
    """
    Interleaved RGBA uint8 (H*W*4) -> planar RGB float32 (1,3,H,W) in [0,1].
    The alpha channel is dropped.
    """
    rgba = np.asarray(rgba)
    expected = width * height * 4
    if rgba.size != expected:
        raise InferenceFailure(
            f"expected {expected} RGBA bytes for {width}x{height}, got {rgba.size}"
        )
    pixels = rgba.reshape(height, width, 4)

    if out is None:
        out = np.empty((1, 3, height, width), dtype=np.float32)
    out[0, 0, :, :] = pixels[:, :, 0]
    out[0, 1, :, :] = pixels[:, :, 1]
    out[0, 2, :, :] = pixels[:, :, 2]
    np.multiply(out, _SCALE, out=out)
    return out


def normalize_depth(raw, count):
    """
    Rescale the first ``count`` raw values so min -> 0 and max -> 1.

    An all-equal range keeps eps = 1, which maps every value to 0 rather
    than to mid-gray.
    """
    raw = np.asarray(raw).reshape(-1)
    if raw.size < count:
        raise InferenceFailure(
            f"model output has {raw.size} values, need at least {count}"
        )
    # float64 so a range wider than float32 max cannot overflow to inf
    values = raw[:count].astype(np.float64)
    lo = values.min()
    hi = values.max()
    eps = hi - lo
    if eps == 0:
        eps = 1.0
    values -= lo
    values /= eps
    return values.astype(np.float32)


class BaseEstimator:
    """
    Abstract depth estimator.
    Backends (ONNX, TorchScript) only need to implement run().
    """

    def __init__(self, input_size):
        self.width, self.height = (int(v) for v in input_size)
        self._input = None

    @property
    def pixel_count(self):
        return self.width * self.height

    def preprocess(self, rgba, width, height):
        if (width, height) != (self.width, self.height):
            raise InferenceFailure(
                f"frame is {width}x{height}, model expects {self.width}x{self.height}"
            )
        if self._input is None:
            self._input = np.empty((1, 3, self.height, self.width), dtype=np.float32)
        return rgba_to_planar(rgba, width, height, out=self._input)

    def run(self, tensor):
        """
        Forward pass on a (1,3,H,W) float32 tensor; returns the first output
        as a numpy array.
        """
        raise NotImplementedError

    def postprocess(self, raw):
        return normalize_depth(raw, self.pixel_count)

    def process(self, rgba, width, height):
        """
        Full pipeline: RGBA frame -> tensor -> inference -> normalized depth
        """
        tensor = self.preprocess(rgba, width, height)
        raw = self.run(tensor)
        return self.postprocess(raw)

    def process_timed(self, rgba, width, height):
        t0 = time.perf_counter()
        tensor = self.preprocess(rgba, width, height)
        t1 = time.perf_counter()
        raw = self.run(tensor)
        t2 = time.perf_counter()
        depth = self.postprocess(raw)
        t3 = time.perf_counter()
        return depth, (t1 - t0) * 1000.0, (t2 - t1) * 1000.0, (t3 - t2) * 1000.0
