"""Real-time depth relief for video: frame sampling, off-thread depth
inference, temporal smoothing and displacement preview."""

__version__ = "0.1.0"
