import os

from depth_relief.models.base_estimator import BaseEstimator, normalize_depth, rgba_to_planar

TORCH_EXTENSIONS = {".pt", ".ts"}


def load_estimator(model_path, input_size, provider="auto", device="auto"):
    """Pick a backend from the model file extension."""
    ext = os.path.splitext(str(model_path))[1].lower()
    if ext in TORCH_EXTENSIONS:
        from depth_relief.models.depth_torch import DepthTorch

        return DepthTorch(model_path, input_size, device=device)

    from depth_relief.models.depth_onnx import DepthONNX

    return DepthONNX(model_path, input_size, provider=provider)


__all__ = ["BaseEstimator", "load_estimator", "normalize_depth", "rgba_to_planar"]
