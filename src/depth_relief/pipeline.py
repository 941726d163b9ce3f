from dataclasses import dataclass, field

from loguru import logger

from depth_relief.config import DEPTH_H, DEPTH_W, EMA_ALPHA, PipelineConfig
from depth_relief.depth_sink import DepthBuffer, DepthLayout, DepthSink
from depth_relief.errors import WorkerUnavailable
from depth_relief.handoff import DROP_OLDEST, Channel
from depth_relief.messages import DepthReply, ErrorReply, InitRequest, Ready
from depth_relief.sampler import FrameSampler
from depth_relief.smoother import TemporalSmoother
from depth_relief.worker import InferenceWorker


@dataclass
class PipelineState:
    """Everything the render loop mutates between ticks."""

    config: PipelineConfig = field(default_factory=PipelineConfig)
    frame_counter: int = 0
    depth: DepthBuffer = field(default_factory=lambda: DepthBuffer.neutral(DEPTH_W, DEPTH_H))
    depth_enabled: bool = True


class DepthPipeline:
    """
    Render-loop side of the depth pipeline.

    Call tick(frame) once per rendered frame and drain() once per rendered
    frame to fold worker replies into the published depth buffer. Both run
    on the render thread; only the worker thread runs inference.
    """

    def __init__(self, config=None, model_path=None, width=DEPTH_W, height=DEPTH_H,
                 layout=DepthLayout.SINGLE_CHANNEL, queue_size=0, overload=DROP_OLDEST,
                 alpha=EMA_ALPHA, worker=None, provider="auto", device="auto"):
        self.model_path = model_path
        self.width = width
        self.height = height
        self.state = PipelineState(
            config=config if config is not None else PipelineConfig(),
            depth=DepthBuffer.neutral(width, height, layout),
        )

        if worker is None:
            worker = InferenceWorker(
                inbox=Channel(capacity=queue_size, overload=overload, name="worker-in"),
                provider=provider,
                device=device,
            )
        self.worker = worker
        self.sampler = FrameSampler(worker.inbox, width, height)
        self.smoother = TemporalSmoother(alpha)
        self.sink = DepthSink()

        self.ready = False
        self.last_error = None
        self.depth_frames = 0

    @property
    def config(self):
        return self.state.config

    @property
    def dropped(self):
        inbox = self.worker.inbox
        return inbox.dropped + inbox.rejected

    def start(self):
        try:
            self.worker.start()
        except WorkerUnavailable as exc:
            logger.error(f"Depth pipeline disabled: {exc}")
            self.state.depth_enabled = False
            self.last_error = str(exc)
            return False

        self.worker.inbox.send(InitRequest(self.model_path, (self.width, self.height)))
        return True

    def stop(self):
        self.worker.stop()

    def tick(self, frame):
        """Sampler step for one render tick. True when a frame was dispatched."""
        if not self.state.depth_enabled:
            return False
        return self.sampler.tick(self.state, frame)

    def drain(self):
        """Apply every pending worker reply. Returns the number of depth maps published."""
        published = 0
        for reply in self.worker.outbox.drain():
            if isinstance(reply, DepthReply):
                depth = reply.data.take()
                # checked before smoothing so a bad map cannot reset the EMA state
                if (reply.width, reply.height) != (self.width, self.height) \
                        or depth.size != self.width * self.height:
                    logger.warning(
                        f"Skipping depth map: got {reply.width}x{reply.height} "
                        f"({depth.size} values), expected {self.width}x{self.height}"
                    )
                    continue
                smoothed = self.smoother.smooth(depth)
                try:
                    self.sink.publish(self.state, smoothed)
                except ValueError as exc:
                    logger.warning(f"Skipping depth map: {exc}")
                    continue
                self.depth_frames += 1
                published += 1
            elif isinstance(reply, Ready):
                self.ready = True
                logger.info("Depth model ready")
            elif isinstance(reply, ErrorReply):
                self.last_error = reply.msg
                logger.warning(f"Depth worker: {reply.msg}")
        return published
