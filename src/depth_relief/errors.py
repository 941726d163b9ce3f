class PipelineError(RuntimeError):
    """Base class for depth pipeline failures."""


class InitializationFailure(PipelineError):
    """Model/session could not be created. The worker stays inert."""


class InferenceFailure(PipelineError):
    """Conversion or forward pass failed for one frame. The frame is dropped."""


class WorkerUnavailable(PipelineError):
    """The worker execution context itself could not be created."""


class BufferMovedError(PipelineError):
    """A buffer was accessed after its ownership was handed off."""
