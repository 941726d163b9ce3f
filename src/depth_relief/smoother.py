import numpy as np

from depth_relief.config import EMA_ALPHA


class TemporalSmoother:
    """
    Exponential moving average over successive depth maps.

    Holds exactly one piece of state, the previous smoothed map. Call it once
    per received depth map, in arrival order, from a single thread.
    """

    def __init__(self, alpha=EMA_ALPHA):
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be in [0, 1], got {alpha}")
        self.alpha = float(alpha)
        self._state = None

    @property
    def state(self):
        return self._state

    def reset(self):
        self._state = None

    def smooth(self, incoming):
        incoming = np.asarray(incoming, dtype=np.float32).reshape(-1)

        # Cold start or resolution change: adopt the incoming map as-is.
        if self._state is None or self._state.shape != incoming.shape:
            self._state = incoming.copy()
            return self._state

        state = self._state
        state *= np.float32(1.0 - self.alpha)
        state += np.float32(self.alpha) * incoming
        return state
