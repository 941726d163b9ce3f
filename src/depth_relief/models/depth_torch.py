import numpy as np
import torch
from loguru import logger

from depth_relief.models.base_estimator import BaseEstimator


class DepthTorch(BaseEstimator):
    """TorchScript backend (.pt / .ts exports of a depth model)."""

    def __init__(self, model_path, input_size, device="auto", precision="auto", model=None):
        super().__init__(input_size)
        self.device = self._resolve_device(device)
        self.precision = self._resolve_precision(precision, self.device)
        self._dtype = torch.float16 if self.precision == "fp16" else torch.float32

        if model is None:
            model = torch.jit.load(str(model_path), map_location=self.device)
        model.eval()
        self.model = model.half() if self._dtype == torch.float16 else model.float()

        logger.info(f"PyTorch device: {self.device}, precision: {self.precision}")

    # -----------------------------------------------------------------------
    # Device / precision helpers
    # -----------------------------------------------------------------------
    @staticmethod
    def _resolve_device(device):
        mode = device.lower()
        if mode == "auto":
            if torch.cuda.is_available():
                return torch.device("cuda:0")
            return torch.device("cpu")
        if mode == "cuda":
            if not torch.cuda.is_available():
                raise RuntimeError("CUDA/ROCm device not available for PyTorch.")
            return torch.device("cuda:0")
        if mode == "cpu":
            return torch.device("cpu")
        raise ValueError("device must be one of: auto, cuda, cpu")

    @staticmethod
    def _resolve_precision(precision, device):
        p = precision.lower()
        if p not in {"auto", "fp16", "fp32"}:
            raise ValueError("precision must be one of: auto, fp16, fp32")
        if p == "auto":
            return "fp16" if device.type == "cuda" else "fp32"
        if device.type != "cuda" and p == "fp16":
            return "fp32"
        return p

    @torch.inference_mode()
    def run(self, tensor):
        t = torch.from_numpy(tensor).to(device=self.device, dtype=self._dtype)
        out = self.model(t)
        if isinstance(out, (tuple, list)):
            out = out[0]
        return out.float().cpu().numpy().astype(np.float32, copy=False)
