"""Worker message protocol.

sampler -> worker:  init, infer
worker  -> sampler: ready, depth, error

Buffers travel as OwnedBuffer; ``transfer()`` is what Channel.send calls to
move them to the receiving side.
"""

from dataclasses import dataclass, field

from depth_relief.handoff import OwnedBuffer


@dataclass(frozen=True)
class InitRequest:
    model_path: str
    input_size: tuple
    type: str = field(default="init", init=False)
    droppable = False


@dataclass(frozen=True)
class InferRequest:
    width: int
    height: int
    data: OwnedBuffer  # RGBA uint8, len = width * height * 4
    type: str = field(default="infer", init=False)
    droppable = True

    def transfer(self):
        return InferRequest(self.width, self.height, self.data.transfer())


@dataclass(frozen=True)
class Ready:
    type: str = field(default="ready", init=False)
    droppable = False


@dataclass(frozen=True)
class DepthReply:
    width: int
    height: int
    data: OwnedBuffer  # float32, len = width * height, values in [0, 1]
    type: str = field(default="depth", init=False)
    droppable = False

    def transfer(self):
        return DepthReply(self.width, self.height, self.data.transfer())


@dataclass(frozen=True)
class ErrorReply:
    msg: str
    type: str = field(default="error", init=False)
    droppable = False
