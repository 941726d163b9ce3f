import numpy as np

from depth_relief.config import PipelineConfig
from depth_relief.handoff import Channel
from depth_relief.pipeline import PipelineState
from depth_relief.sampler import FrameSampler, rasterize


def _run(ticks, config, frame):
    channel = Channel()
    sampler = FrameSampler(channel, width=8, height=8)
    state = PipelineState(config=config)
    dispatched = []
    for _ in range(ticks):
        if sampler.tick(state, frame):
            dispatched.append(state.frame_counter)
    return state, channel, dispatched


class TestFrameSampler:
    def test_stride_three(self, gradient_frame):
        state, channel, dispatched = _run(10, PipelineConfig(stride=3), gradient_frame)
        assert dispatched == [3, 6, 9]
        assert len(channel) == 3
        assert state.frame_counter == 10

    def test_stride_below_one_means_every_tick(self, gradient_frame):
        config = PipelineConfig(stride=0)
        _, _, dispatched = _run(4, config, gradient_frame)
        assert dispatched == [1, 2, 3, 4]

    def test_paused_sends_nothing(self, gradient_frame):
        state, channel, dispatched = _run(12, PipelineConfig(stride=1, paused=True), gradient_frame)
        assert dispatched == []
        assert len(channel) == 0
        assert state.frame_counter == 12

    def test_video_not_ready(self):
        state, channel, dispatched = _run(5, PipelineConfig(), None)
        assert dispatched == []
        assert state.frame_counter == 5

    def test_config_is_read_every_tick(self, gradient_frame):
        channel = Channel()
        sampler = FrameSampler(channel, width=8, height=8)
        state = PipelineState(config=PipelineConfig(stride=1))
        assert sampler.tick(state, gradient_frame)
        state.config.paused = True
        assert not sampler.tick(state, gradient_frame)
        state.config.paused = False
        state.config.stride = 2
        assert not sampler.tick(state, gradient_frame)  # counter 3
        assert sampler.tick(state, gradient_frame)      # counter 4

    def test_request_payload(self, gradient_frame):
        _, channel, _ = _run(1, PipelineConfig(), gradient_frame)
        msg = channel.try_recv()
        assert msg.type == "infer"
        assert (msg.width, msg.height) == (8, 8)
        data = msg.data.take()
        assert data.dtype == np.uint8
        assert data.size == 8 * 8 * 4
        pixels = data.reshape(8, 8, 4)
        # red ramps left to right, alpha opaque
        assert pixels[0, 0, 0] < pixels[0, -1, 0]
        assert np.all(pixels[..., 3] == 255)

    def test_each_capture_is_a_fresh_buffer(self, gradient_frame):
        _, channel, _ = _run(2, PipelineConfig(), gradient_frame)
        first, second = channel.drain()
        a = first.data.take()
        b = second.data.take()
        assert a is not b
        assert not np.shares_memory(a, b)


class TestRasterize:
    def test_bgr_to_rgba(self):
        frame = np.zeros((2, 2, 3), dtype=np.uint8)
        frame[..., 0] = 10  # blue
        frame[..., 2] = 200  # red
        rgba = rasterize(frame, 2, 2).reshape(2, 2, 4)
        assert rgba[0, 0].tolist() == [200, 0, 10, 255]

    def test_resizes(self, gradient_frame):
        assert rasterize(gradient_frame, 16, 16).size == 16 * 16 * 4
