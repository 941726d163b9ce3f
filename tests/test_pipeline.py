import threading

import numpy as np

from conftest import failing_factory, red_factory, wait_for
from depth_relief.config import PipelineConfig
from depth_relief.depth_sink import DepthLayout
from depth_relief.handoff import REJECT_NEW, Channel, OwnedBuffer
from depth_relief.messages import DepthReply
from depth_relief.pipeline import DepthPipeline
from depth_relief.worker import InferenceWorker

W = H = 8


def _pipeline(factory=red_factory, config=None, inbox=None, **kwargs):
    worker = InferenceWorker(inbox=inbox, estimator_factory=factory)
    return DepthPipeline(config or PipelineConfig(), model_path="m.onnx",
                         width=W, height=H, worker=worker, **kwargs)


class TestDepthPipeline:
    def test_starts_with_neutral_depth(self):
        pipeline = _pipeline()
        assert np.all(pipeline.state.depth.depth() == 0.5)
        assert pipeline.state.depth_enabled

    def test_end_to_end_publishes_smoothed_depth(self, gradient_frame):
        pipeline = _pipeline()
        assert pipeline.start()
        try:
            assert pipeline.tick(gradient_frame)
            published = []
            assert wait_for(lambda: published.append(pipeline.drain()) or sum(published) >= 1)
            assert pipeline.ready
            first = pipeline.state.depth.depth().copy()
            # red ramps left to right, so does the depth
            assert first[0, 0] == 0.0
            assert first[0, -1] == 1.0

            dark = np.zeros_like(gradient_frame)
            dark[..., 2] = 255 - gradient_frame[..., 2]
            assert pipeline.tick(dark)
            assert wait_for(lambda: published.append(pipeline.drain()) or sum(published) >= 2)
        finally:
            pipeline.stop()

        second = pipeline.state.depth.depth()
        # 0.6 * reversed ramp + 0.4 * first ramp
        assert second[0, 0] == np.float32(0.6)
        np.testing.assert_allclose(second[0, -1], 0.4, rtol=1e-6)
        assert pipeline.depth_frames == 2
        assert pipeline.state.depth.version == 2

    def test_failed_init_keeps_neutral_depth(self, gradient_frame):
        pipeline = _pipeline(factory=failing_factory)
        pipeline.start()
        try:
            for _ in range(10):
                pipeline.tick(gradient_frame)
            assert wait_for(lambda: pipeline.drain() == 0 and pipeline.last_error is not None)
            assert wait_for(lambda: len(pipeline.worker.inbox) == 0)
            assert pipeline.drain() == 0
        finally:
            pipeline.stop()

        assert "init failed" in pipeline.last_error
        assert not pipeline.ready
        assert pipeline.depth_frames == 0
        assert np.all(pipeline.state.depth.depth() == 0.5)

    def test_worker_unavailable_disables_depth(self, monkeypatch, gradient_frame):
        def refuse(self):
            raise RuntimeError("can't start new thread")

        monkeypatch.setattr(threading.Thread, "start", refuse)
        pipeline = _pipeline()
        assert not pipeline.start()
        assert not pipeline.state.depth_enabled
        assert not pipeline.tick(gradient_frame)
        assert pipeline.drain() == 0
        assert np.all(pipeline.state.depth.depth() == 0.5)

    def test_pause_sends_nothing(self, gradient_frame):
        pipeline = _pipeline(config=PipelineConfig(paused=True))
        for _ in range(6):
            assert not pipeline.tick(gradient_frame)
        assert len(pipeline.worker.inbox) == 0
        assert pipeline.state.frame_counter == 6

    def test_bounded_queue_counts_rejections(self, gradient_frame):
        inbox = Channel(capacity=2, overload=REJECT_NEW)
        pipeline = _pipeline(inbox=inbox)
        # worker not started: requests pile up
        results = [pipeline.tick(gradient_frame) for _ in range(5)]
        assert results == [True, True, False, False, False]
        assert pipeline.dropped == 3

    def test_wrong_size_reply_keeps_smoother_state(self):
        pipeline = DepthPipeline(PipelineConfig(), model_path="m.onnx", width=2, height=2,
                                 worker=InferenceWorker(estimator_factory=red_factory))
        outbox = pipeline.worker.outbox
        outbox.send(DepthReply(2, 2, OwnedBuffer(np.zeros(4, dtype=np.float32))))
        outbox.send(DepthReply(3, 1, OwnedBuffer(np.ones(3, dtype=np.float32))))
        assert pipeline.drain() == 1
        assert pipeline.smoother.state.tolist() == [0.0, 0.0, 0.0, 0.0]

        outbox.send(DepthReply(2, 2, OwnedBuffer(np.ones(4, dtype=np.float32))))
        assert pipeline.drain() == 1
        # blended with the last good map, not a cold start
        np.testing.assert_allclose(pipeline.state.depth.depth(), np.full((2, 2), 0.6), rtol=1e-6)
        assert pipeline.depth_frames == 2

    def test_rgba_layout(self, gradient_frame):
        pipeline = _pipeline(layout=DepthLayout.RGBA)
        pipeline.start()
        try:
            pipeline.tick(gradient_frame)
            assert wait_for(lambda: pipeline.drain() > 0)
        finally:
            pipeline.stop()
        assert pipeline.state.depth.data.shape == (H, W, 4)
        assert pipeline.state.depth.depth()[0, -1] == 1.0
