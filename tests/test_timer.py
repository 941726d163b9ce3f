from depth_relief.timer import FPSTimer, TimingStats


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestFPSTimer:
    def test_reports_after_one_second(self):
        clock = FakeClock()
        timer = FPSTimer(clock=clock)
        for _ in range(3):
            clock.now += 0.25
            timer.update()
        assert timer.fps == 0.0
        clock.now += 0.25
        assert timer.update() == 4.0
        assert timer.frames == 0


class TestTimingStats:
    def test_warmup_frames_ignored(self):
        stats = TimingStats(warmup=2)
        assert not stats.record(read=1.0)
        assert not stats.record(read=1.0)
        assert stats.record(read=4.0, render=6.0)
        assert stats.frames == 1
        assert stats.stage_ms["read"] == 4.0

    def test_format(self):
        stats = TimingStats(warmup=0, target_fps=100.0)
        stats.record(read=2.0, sample=1.0, drain=1.0, render=6.0)   # 10ms, on budget
        stats.record(read=2.0, sample=1.0, drain=1.0, render=16.0)  # 20ms, late
        line = stats.format(depth=3)
        assert line.startswith("[timing] frames=2")
        assert "read=2.00ms" in line
        assert "render=11.00ms" in line
        assert "late=1/2(50.0%)" in line
        assert "drop_est=1" in line
        assert line.endswith("depth=3")

    def test_empty(self):
        assert TimingStats().format() == "[timing] frames=0"
