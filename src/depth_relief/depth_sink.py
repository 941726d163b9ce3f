"""
Published depth buffer consumed by the displacement stage.

The buffer layout is chosen once at startup by probing the renderer; after
that every publish overwrites the whole buffer and marks it dirty so the
renderer re-uploads it on its next frame.
"""

import threading
from enum import Enum

import numpy as np
from loguru import logger

from depth_relief.config import NEUTRAL_DEPTH


class DepthLayout(Enum):
    SINGLE_CHANNEL = "single"  # (H, W) float32
    RGBA = "rgba"              # (H, W, 4) float32, depth in RGB, alpha 1


def probe_layout(renderer=None):
    """Select the buffer layout the renderer can sample from."""
    if renderer is None or getattr(renderer, "supports_single_channel_float", True):
        return DepthLayout.SINGLE_CHANNEL
    logger.info("Renderer lacks single-channel float buffers, using RGBA depth layout")
    return DepthLayout.RGBA


class DepthBuffer:
    def __init__(self, width, height, layout=DepthLayout.SINGLE_CHANNEL, fill=NEUTRAL_DEPTH):
        self.width = width
        self.height = height
        self.layout = layout
        if layout is DepthLayout.RGBA:
            self.data = np.full((height, width, 4), fill, dtype=np.float32)
            self.data[..., 3] = 1.0
        else:
            self.data = np.full((height, width), fill, dtype=np.float32)
        self.dirty = True
        self.version = 0

    @classmethod
    def neutral(cls, width, height, layout=DepthLayout.SINGLE_CHANNEL):
        """Uniform mid depth: zero displacement everywhere."""
        return cls(width, height, layout, fill=NEUTRAL_DEPTH)

    def depth(self):
        """Single-channel (H, W) view regardless of layout."""
        if self.layout is DepthLayout.RGBA:
            return self.data[..., 0]
        return self.data

    def mark_uploaded(self):
        self.dirty = False


class DepthSink:
    """
    Writes smoothed depth maps into the pipeline's published DepthBuffer.
    Must be used from the thread that created it (the render loop).
    """

    def __init__(self):
        self._owner = threading.get_ident()

    def publish(self, state, smoothed):
        if threading.get_ident() != self._owner:
            raise RuntimeError("DepthSink.publish called off the render thread")

        buf = state.depth
        smoothed = np.asarray(smoothed, dtype=np.float32)
        if smoothed.size != buf.width * buf.height:
            raise ValueError(
                f"depth map has {smoothed.size} values, buffer is {buf.width}x{buf.height}"
            )

        plane = smoothed.reshape(buf.height, buf.width)
        if buf.layout is DepthLayout.RGBA:
            buf.data[..., :3] = plane[..., None]
        else:
            np.copyto(buf.data, plane)
        buf.dirty = True
        buf.version += 1
