"""
Displacement stage: depth buffer + depth scale -> displaced geometry.

Every vertex moves along its normal by (depth - 0.5) * depth_scale, so a
depth of 0.5 leaves the surface flat. The OpenCV preview applies the same
offset as a horizontal parallax shift seen from a slightly rotated camera.
"""

import math

import cv2
import numpy as np

from depth_relief.config import GEO_SEGMENTS, NEUTRAL_DEPTH


def plane_geometry(aspect=16 / 9, segments=GEO_SEGMENTS):
    """
    Grid plane fitted to the video aspect ratio: aspect x 1 for landscape,
    1 x 1/aspect for portrait. uv (0, 0) is the top-left corner, matching
    row 0 of the depth buffer.

    Returns (positions, normals, uvs) as float32 arrays of shape (N,3),
    (N,3) and (N,2) with N = (segments + 1) ** 2.
    """
    segments = max(1, int(segments))
    if aspect >= 1:
        width, height = aspect, 1.0
    else:
        width, height = 1.0, 1.0 / aspect

    u = np.linspace(0.0, 1.0, segments + 1, dtype=np.float32)
    uu, vv = np.meshgrid(u, u)
    uvs = np.stack([uu.ravel(), vv.ravel()], axis=1)

    positions = np.zeros((uvs.shape[0], 3), dtype=np.float32)
    positions[:, 0] = (uvs[:, 0] - 0.5) * width
    positions[:, 1] = (0.5 - uvs[:, 1]) * height

    normals = np.zeros_like(positions)
    normals[:, 2] = 1.0
    return positions, normals, uvs


def sample_depth(depth, uvs):
    """Bilinear lookup of a (H, W) depth map at normalized (u, v) coordinates."""
    depth = np.asarray(depth, dtype=np.float32)
    h, w = depth.shape
    uvs = np.clip(np.asarray(uvs, dtype=np.float32), 0.0, 1.0)
    x = uvs[:, 0] * (w - 1)
    y = uvs[:, 1] * (h - 1)

    x0 = np.floor(x).astype(np.int64)
    y0 = np.floor(y).astype(np.int64)
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)
    fx = x - x0
    fy = y - y0

    top = depth[y0, x0] * (1 - fx) + depth[y0, x1] * fx
    bottom = depth[y1, x0] * (1 - fx) + depth[y1, x1] * fx
    return top * (1 - fy) + bottom * fy


def displace_vertices(positions, normals, uvs, depth, depth_scale):
    offset = (sample_depth(depth, uvs) - NEUTRAL_DEPTH) * np.float32(depth_scale)
    return positions + normals * offset[:, None]


def export_ply(path, frame, depth, depth_scale, segments=64):
    """Write the displaced, video-colored plane as an ASCII PLY point cloud."""
    h, w = frame.shape[:2]
    positions, normals, uvs = plane_geometry(w / h, segments)
    points = displace_vertices(positions, normals, uvs, depth, depth_scale)

    cols = np.rint(uvs[:, 0] * (w - 1)).astype(np.int64)
    rows = np.rint(uvs[:, 1] * (h - 1)).astype(np.int64)
    bgr = frame[rows, cols, :3]

    with open(path, "w", encoding="ascii") as f:
        f.write("ply\nformat ascii 1.0\n")
        f.write(f"element vertex {len(points)}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write("property uchar red\nproperty uchar green\nproperty uchar blue\n")
        f.write("end_header\n")
        for (x, y, z), (b, g, r) in zip(points, bgr):
            f.write(f"{x:.5f} {y:.5f} {z:.5f} {r} {g} {b}\n")
    return len(points)


class PreviewRenderer:
    """
    OpenCV window showing the parallax-displaced video next to the depth map.
    """

    supports_single_channel_float = True

    def __init__(self, window_name="Depth Relief", view_angle=0.35, display=True):
        self.window_name = window_name
        self.view_angle = view_angle
        self.display = display
        self._depth_version = None
        self._depth_hw = None
        self._depth = None
        self._grid = None

    def _upload(self, depth_buffer, h, w):
        if (self._depth is not None and not depth_buffer.dirty
                and self._depth_version == depth_buffer.version
                and self._depth_hw == (h, w)):
            return self._depth
        self._depth = cv2.resize(depth_buffer.depth(), (w, h), interpolation=cv2.INTER_LINEAR)
        self._depth_version = depth_buffer.version
        self._depth_hw = (h, w)
        depth_buffer.mark_uploaded()
        return self._depth

    def _ensure_grid(self, h, w):
        if self._grid is None or self._grid[0].shape != (h, w):
            self._grid = np.meshgrid(np.arange(w, dtype=np.float32), np.arange(h, dtype=np.float32))
        return self._grid

    def warp(self, frame, depth, depth_scale):
        h, w = frame.shape[:2]
        xx, yy = self._ensure_grid(h, w)
        offset = (depth - NEUTRAL_DEPTH) * np.float32(depth_scale)
        # plane height is 1 world unit -> h pixels
        dx = offset * np.float32(math.sin(self.view_angle) * h)
        return cv2.remap(frame, xx - dx, yy, interpolation=cv2.INTER_LINEAR,
                         borderMode=cv2.BORDER_REFLECT101)

    def render(self, frame, depth_buffer, depth_scale, overlay=None):
        h, w = frame.shape[:2]
        depth = self._upload(depth_buffer, h, w)
        warped = self.warp(frame, depth, depth_scale)

        depth_u8 = (np.clip(depth, 0.0, 1.0) * 255.0).astype(np.uint8)
        depth_bgr = cv2.applyColorMap(depth_u8, cv2.COLORMAP_INFERNO)
        canvas = np.hstack([warped, depth_bgr])

        if overlay:
            cv2.putText(canvas, overlay, (20, 40), cv2.FONT_HERSHEY_SIMPLEX,
                        1.0, (0, 255, 0), 2)
        if self.display:
            cv2.imshow(self.window_name, canvas)
        return canvas

    def close(self):
        if self.display:
            cv2.destroyAllWindows()
