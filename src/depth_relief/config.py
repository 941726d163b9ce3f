from dataclasses import dataclass

# Capture / depth-map resolution (square, fixed for the lifetime of the pipeline)
DEPTH_W = 256
DEPTH_H = 256

# Temporal smoothing blend: new = EMA_ALPHA * incoming + (1 - EMA_ALPHA) * prior
EMA_ALPHA = 0.6

# Depth value that produces zero displacement
NEUTRAL_DEPTH = 0.5

GEO_SEGMENTS = 256

DEFAULT_MODEL_PATH = "midas_small.onnx"
DEFAULT_DEPTH_SCALE = 0.25
DEFAULT_STRIDE = 1


@dataclass
class PipelineConfig:
    """
    Externally mutable settings, read once per render tick.
    Fields may be changed at any time from the UI side, so readers go
    through the effective_* properties rather than trusting raw values.
    """

    depth_scale: float = DEFAULT_DEPTH_SCALE
    stride: int = DEFAULT_STRIDE
    paused: bool = False

    def __post_init__(self):
        if self.depth_scale < 0:
            raise ValueError(f"depth_scale must be >= 0, got {self.depth_scale}")

    @property
    def effective_stride(self):
        try:
            stride = int(self.stride)
        except (TypeError, ValueError):
            return 1
        return max(1, stride)

    @property
    def effective_depth_scale(self):
        return max(0.0, float(self.depth_scale))
