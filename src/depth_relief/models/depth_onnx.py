import os

import numpy as np
import onnxruntime as ort
from loguru import logger

from depth_relief.errors import InitializationFailure
from depth_relief.models.base_estimator import BaseEstimator

PROVIDERS = {
    "cuda": ("CUDAExecutionProvider", None),
    "tensorrt": ("TensorrtExecutionProvider", None),
    "dml": ("DmlExecutionProvider", {"device_id": 0}),
    "coreml": ("CoreMLExecutionProvider", None),
    "openvino": ("OpenVINOExecutionProvider", None),
}
GPU_PRIORITY = ("tensorrt", "cuda", "dml", "coreml", "openvino")


def build_providers(provider, available=None):
    if available is None:
        available = set(ort.get_available_providers())
    mode = provider.lower()
    valid = {"auto", "cpu", *PROVIDERS}
    if mode not in valid:
        raise ValueError(f"provider must be one of: {sorted(valid)}")

    resolved = []
    if mode == "auto":
        for key in GPU_PRIORITY:
            ep_name, ep_opts = PROVIDERS[key]
            if ep_name in available:
                resolved.append((ep_name, ep_opts) if ep_opts is not None else ep_name)
                break
    elif mode != "cpu":
        ep_name, ep_opts = PROVIDERS[mode]
        if ep_name not in available:
            raise RuntimeError(
                f"{ep_name} is not available in this environment. "
                f"Available providers: {sorted(available)}"
            )
        resolved.append((ep_name, ep_opts) if ep_opts is not None else ep_name)

    # CPU always stays last as the fallback
    if "CPUExecutionProvider" in available:
        resolved.append("CPUExecutionProvider")

    if not resolved:
        raise RuntimeError(
            "No compatible execution provider found. "
            f"Available providers: {sorted(available)}"
        )
    return resolved


class DepthONNX(BaseEstimator):
    """ONNX Runtime backend for MiDaS-style monocular depth models."""

    def __init__(self, onnx_path, input_size, provider="auto", session=None):
        super().__init__(input_size)

        if session is None:
            so = ort.SessionOptions()
            so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
            so.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
            # leave one core to the render loop
            so.intra_op_num_threads = max(1, (os.cpu_count() or 4) - 1)
            providers = build_providers(provider)
            logger.info(f"ONNX providers: {providers}")
            session = ort.InferenceSession(str(onnx_path), sess_options=so, providers=providers)
        self.session = session

        model_input = self.session.get_inputs()[0]
        self.input_name = model_input.name
        self.output_name = self.session.get_outputs()[0].name

        expected_hw = self._resolve_expected_hw(model_input.shape)
        if expected_hw is not None and expected_hw != (self.height, self.width):
            exp_h, exp_w = expected_hw
            raise InitializationFailure(
                f"model input is fixed at {exp_w}x{exp_h}, "
                f"pipeline captures {self.width}x{self.height}"
            )

        if "float16" in model_input.type:
            self.dtype = np.float16
            logger.info("Depth model expects FP16 input")
        else:
            self.dtype = np.float32

    @staticmethod
    def _resolve_expected_hw(shape):
        if len(shape) < 4:
            return None
        h, w = shape[2], shape[3]
        if isinstance(h, int) and isinstance(w, int) and h > 0 and w > 0:
            return (h, w)
        return None

    def run(self, tensor):
        if self.dtype == np.float16:
            tensor = tensor.astype(np.float16)
        outputs = self.session.run([self.output_name], {self.input_name: tensor})
        return np.asarray(outputs[0], dtype=np.float32)
