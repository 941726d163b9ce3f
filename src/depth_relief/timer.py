import time
from collections import deque


class FPSTimer:
    def __init__(self, clock=time.perf_counter):
        self._clock = clock
        self.last = clock()
        self.frames = 0
        self.fps = 0.0

    def update(self):
        self.frames += 1
        now = self._clock()
        if now - self.last >= 1.0:
            self.fps = self.frames / (now - self.last)
            self.frames = 0
            self.last = now
        return self.fps


class TimingStats:
    """
    Per-stage render loop timing, reported as a single "[timing] k=v ..."
    line. Frames before ``warmup`` are ignored.
    """

    STAGES = ("read", "sample", "drain", "render")

    def __init__(self, warmup=30, target_fps=0.0, max_samples=10000):
        self.warmup = warmup
        self.target_fps = target_fps
        self.seen = 0
        self.frames = 0
        self.stage_ms = dict.fromkeys(self.STAGES, 0.0)
        self.frame_ms_sum = 0.0
        self.fps_samples = deque(maxlen=max_samples)
        self.late_frames = 0
        self.overrun_ms = 0.0

    def record(self, **stages):
        """Record one frame given per-stage durations in milliseconds."""
        self.seen += 1
        if self.seen <= self.warmup:
            return False

        self.frames += 1
        frame_ms = 0.0
        for name, ms in stages.items():
            self.stage_ms[name] = self.stage_ms.get(name, 0.0) + ms
            frame_ms += ms
        self.frame_ms_sum += frame_ms
        if frame_ms > 0:
            self.fps_samples.append(1000.0 / frame_ms)

        if self.target_fps > 0:
            budget_ms = 1000.0 / self.target_fps
            if frame_ms > budget_ms:
                self.late_frames += 1
                self.overrun_ms += frame_ms - budget_ms
        return True

    def one_percent_low(self):
        if not self.fps_samples:
            return 0.0
        ordered = sorted(self.fps_samples)
        k = max(1, int(len(ordered) * 0.01))
        return sum(ordered[:k]) / k

    def format(self, **extra):
        if self.frames == 0:
            return "[timing] frames=0"
        avg_frame_ms = self.frame_ms_sum / self.frames
        avg_fps = 1000.0 / avg_frame_ms if avg_frame_ms > 0 else 0.0

        parts = [f"[timing] frames={self.frames}"]
        for name, total in self.stage_ms.items():
            parts.append(f"{name}={total / self.frames:.2f}ms")
        parts.append(f"fps={avg_fps:.2f}")
        parts.append(f"fps_1p_low={self.one_percent_low():.2f}")

        if self.target_fps > 0:
            late_pct = 100.0 * self.late_frames / self.frames
            budget_ms = 1000.0 / self.target_fps
            drop_est = int(self.overrun_ms / budget_ms)
            parts.append(f"target={self.target_fps:.2f}")
            parts.append(f"late={self.late_frames}/{self.frames}({late_pct:.1f}%)")
            parts.append(f"drop_est={drop_est}")

        for key, value in extra.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)
