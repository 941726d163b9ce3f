import queue
import threading

import cv2
import numpy as np


class VideoSource:
    def __init__(self, path, prefetch=0, loop=True):
        self.path = path
        self.loop = loop
        self.cap = cv2.VideoCapture(path)
        if not self.cap.isOpened():
            raise RuntimeError("Cannot open video")
        # Reduce decoder queueing latency when backend supports it.
        self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self.prefetch = max(0, int(prefetch))
        self._queue = None
        self._thread = None
        self._stopped = False
        self.finished = False
        self._queue_done = False
        self._sentinel = object()

        if self.prefetch > 0:
            self._queue = queue.Queue(maxsize=self.prefetch)
            self._thread = threading.Thread(target=self._reader_loop, daemon=True)
            self._thread.start()

    def _read_looping(self):
        ret, frame = self.cap.read()
        if not ret and self.loop:
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self.cap.read()
        if not ret:
            self.finished = True
        return ret, frame

    def _reader_loop(self):
        while not self._stopped:
            ret, frame = self._read_looping()
            if not ret:
                self._queue.put(self._sentinel)
                break
            self._queue.put(frame)

    def read(self):
        if self.finished and self._queue is None:
            return False, None
        if self._queue is None:
            return self._read_looping()

        if self._queue_done:
            return False, None
        item = self._queue.get()
        if item is self._sentinel:
            self._queue_done = True
            return False, None
        return True, item

    def release(self):
        self._stopped = True
        if self._thread is not None and self._thread.is_alive():
            # unblock a reader stuck on a full queue
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            self._thread.join(timeout=0.5)
        self.cap.release()


class DemoSource:
    """Hue-cycling gradient used when no video is loaded."""

    def __init__(self, width=320, height=180):
        self.width = width
        self.height = height
        self.t = 0

    def read(self):
        hue = (self.t * 4) % 180  # OpenCV hue range is [0, 180)
        hsv = np.empty((self.height, self.width, 3), dtype=np.uint8)
        hsv[..., 0] = hue
        hsv[..., 1] = 178
        # vertical brightness ramp so the depth model has something to chew on
        hsv[..., 2] = np.linspace(90, 230, self.height, dtype=np.uint8)[:, None]
        frame = cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)
        cv2.putText(frame, "Demo gradient (no video)", (16, 36),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)
        self.t += 1
        return True, frame

    def release(self):
        pass
