"""
Inference worker: owns the depth model session on its own thread.

Requests arrive on ``inbox`` and are handled strictly one at a time in
queue order; replies go out on ``outbox``. The render loop never waits on
this thread. Nothing raised while handling a message escapes the thread;
failures become ErrorReply messages.
"""

import threading

from loguru import logger

from depth_relief.errors import InitializationFailure, WorkerUnavailable
from depth_relief.handoff import Channel, OwnedBuffer
from depth_relief.messages import DepthReply, ErrorReply, InferRequest, InitRequest, Ready
from depth_relief.models import load_estimator


def _describe(exc):
    return str(exc) or exc.__class__.__name__


class InferenceWorker:
    def __init__(self, inbox=None, outbox=None, estimator_factory=None,
                 provider="auto", device="auto"):
        self.inbox = inbox if inbox is not None else Channel(name="worker-in")
        self.outbox = outbox if outbox is not None else Channel(name="worker-out")
        self._factory = estimator_factory or load_estimator
        self._provider = provider
        self._device = device

        self.session = None
        self.input_size = None
        self._init_failed = False
        self._thread = None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    def start(self):
        thread = threading.Thread(target=self._loop, name="depth-worker", daemon=True)
        try:
            thread.start()
        except RuntimeError as exc:
            raise WorkerUnavailable(f"cannot start depth worker: {exc}") from exc
        self._thread = thread
        logger.info("[worker] started")

    def stop(self, timeout=1.0):
        """Discard pending requests, close the inbox and wait for the thread."""
        pending = self.inbox.drain()
        self.inbox.close()
        if pending:
            logger.debug(f"[worker] discarded {len(pending)} pending requests")
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        if self._thread is not None and not self._thread.is_alive():
            self._thread = None

    @property
    def alive(self):
        return self._thread is not None and self._thread.is_alive()

    def _loop(self):
        while True:
            message = self.inbox.recv()
            if message is None:
                break
            reply = self.handle(message)
            if reply is not None:
                self.outbox.send(reply)
        logger.info("[worker] stopped")

    # -----------------------------------------------------------------------
    # Message handling
    # -----------------------------------------------------------------------
    def handle(self, message):
        """Process one request and return the reply, or None for no reply."""
        if isinstance(message, InitRequest):
            return self._handle_init(message)
        if isinstance(message, InferRequest):
            return self._handle_infer(message)
        logger.warning(f"[worker] ignoring unknown message {message!r}")
        return None

    def _handle_init(self, message):
        if self.session is not None:
            return Ready()
        if self._init_failed:
            return ErrorReply("init failed: worker is inert after a failed init")

        logger.info(f"[worker] loading model {message.model_path}")
        try:
            session = self._factory(
                message.model_path,
                tuple(message.input_size),
                provider=self._provider,
                device=self._device,
            )
        except Exception as exc:
            self._init_failed = True
            failure = exc if isinstance(exc, InitializationFailure) else InitializationFailure(_describe(exc))
            logger.error(f"[worker] init failed: {_describe(failure)}")
            return ErrorReply(f"init failed: {_describe(failure)}")

        self.session = session
        self.input_size = tuple(message.input_size)
        logger.info("[worker] model loaded")
        return Ready()

    def _handle_infer(self, message):
        if self.session is None:
            # Dropping unconsumed data is enough; no reply by contract.
            message.data.take()
            return None

        try:
            rgba = message.data.take()
            depth = self.session.process(rgba, message.width, message.height)
        except Exception as exc:
            logger.warning(f"[worker] infer failed: {_describe(exc)}")
            return ErrorReply(f"infer failed: {_describe(exc)}")

        return DepthReply(message.width, message.height, OwnedBuffer(depth))
