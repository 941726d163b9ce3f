import cv2
import numpy as np

from depth_relief.config import DEPTH_H, DEPTH_W
from depth_relief.handoff import OwnedBuffer
from depth_relief.messages import InferRequest


def rasterize(frame_bgr, width, height):
    """
    Downsample a BGR(A) video frame into a fresh interleaved RGBA uint8
    buffer of exactly width*height*4 bytes.
    """
    h, w = frame_bgr.shape[:2]
    if (w, h) != (width, height):
        frame_bgr = cv2.resize(frame_bgr, (width, height), interpolation=cv2.INTER_AREA)

    if frame_bgr.ndim == 2:
        rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_GRAY2RGBA)
    elif frame_bgr.shape[2] == 4:
        rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGRA2RGBA)
    else:
        rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)
    return np.ascontiguousarray(rgba, dtype=np.uint8).reshape(-1)


class FrameSampler:
    """
    Render-tick driven frame capture.

    Every tick bumps the frame counter; every ``stride``-th unpaused tick
    with a ready frame sends one infer request to the worker. Never waits
    on the worker.
    """

    def __init__(self, channel, width=DEPTH_W, height=DEPTH_H):
        self.channel = channel
        self.width = width
        self.height = height

    def tick(self, state, frame):
        state.frame_counter += 1
        config = state.config
        if config.paused:
            return False
        if state.frame_counter % config.effective_stride != 0:
            return False
        if frame is None:
            # video not decoded far enough yet
            return False

        buffer = OwnedBuffer(rasterize(frame, self.width, self.height))
        return self.channel.send(InferRequest(self.width, self.height, buffer))
