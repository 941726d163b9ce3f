import argparse
import sys
import time
from pathlib import Path

import cv2
from loguru import logger

from depth_relief.config import (
    DEFAULT_DEPTH_SCALE,
    DEFAULT_MODEL_PATH,
    DEFAULT_STRIDE,
    DEPTH_H,
    DEPTH_W,
    PipelineConfig,
)
from depth_relief.depth_sink import probe_layout
from depth_relief.displacement import PreviewRenderer, export_ply
from depth_relief.handoff import OVERLOAD_POLICIES, DROP_OLDEST
from depth_relief.pipeline import DepthPipeline
from depth_relief.timer import FPSTimer, TimingStats
from depth_relief.video_source import DemoSource, VideoSource

DEPTH_SCALE_STEP = 0.05


def setup_logging(log_level="INFO", log_file=None):
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
               "<cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
        )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Real-time depth relief for video")
    parser.add_argument("--video", default=None, help="Input video path (omit for --demo)")
    parser.add_argument("--demo", action="store_true", help="Use a generated gradient instead of a video")
    parser.add_argument("--model", default=DEFAULT_MODEL_PATH, help="Depth model (.onnx, or TorchScript .pt/.ts)")
    parser.add_argument(
        "--provider",
        default="auto",
        choices=["auto", "cpu", "cuda", "tensorrt", "dml", "coreml", "openvino"],
        help="ONNX Runtime execution provider"
    )
    parser.add_argument(
        "--device",
        default="auto",
        choices=["auto", "cuda", "cpu"],
        help="PyTorch device selection (TorchScript models only)"
    )
    parser.add_argument("--depth-scale", type=float, default=DEFAULT_DEPTH_SCALE, help="Displacement strength")
    parser.add_argument("--stride", type=int, default=DEFAULT_STRIDE, help="Send every Nth rendered frame to the model")
    parser.add_argument("--paused", action="store_true", help="Start with depth sampling paused")
    parser.add_argument(
        "--queue-size",
        type=int,
        default=0,
        help="Max pending inference requests (0 = unbounded)"
    )
    parser.add_argument(
        "--overload",
        default=DROP_OLDEST,
        choices=list(OVERLOAD_POLICIES),
        help="What to do with a new frame when the inference queue is full"
    )
    parser.add_argument("--prefetch", type=int, default=4, help="Reader prefetch queue size (0 disables)")
    parser.add_argument("--no-loop", action="store_true", help="Stop at end of video instead of rewinding")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = run until quit)")
    parser.add_argument("--warmup", type=int, default=30, help="Frames to ignore in timing stats")
    parser.add_argument("--timing-interval", type=int, default=0, help="Frames between timing reports (0 disables)")
    parser.add_argument("--target-fps", type=float, default=0.0, help="Target render FPS for pacing stats")
    parser.add_argument("--export-ply", default=None, help="Write the final displaced mesh to this .ply file")
    parser.add_argument("--no-display", action="store_true", help="Disable the preview window")
    parser.add_argument("--log-level", default="INFO", help="Console log level")
    parser.add_argument("--log-file", default=None, help="Also log to this file")
    return parser.parse_args(argv)


def open_source(args):
    if args.demo or not args.video:
        logger.info("No video given, running demo gradient")
        return DemoSource()
    return VideoSource(args.video, prefetch=args.prefetch, loop=not args.no_loop)


def handle_key(key, config):
    """Apply a preview-window key press. Returns False to quit."""
    if key == 27:
        return False
    if key == ord(" "):
        config.paused = not config.paused
        logger.info(f"paused={config.paused}")
    elif key in (ord("+"), ord("=")):
        config.depth_scale = round(config.effective_depth_scale + DEPTH_SCALE_STEP, 4)
    elif key in (ord("-"), ord("_")):
        config.depth_scale = round(max(0.0, config.effective_depth_scale - DEPTH_SCALE_STEP), 4)
    elif key == ord("]"):
        config.stride = config.effective_stride + 1
    elif key == ord("["):
        config.stride = max(1, config.effective_stride - 1)
    return True


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    config = PipelineConfig(depth_scale=args.depth_scale, stride=args.stride, paused=args.paused)
    source = open_source(args)
    renderer = PreviewRenderer(display=not args.no_display)

    pipeline = DepthPipeline(
        config,
        model_path=args.model,
        width=DEPTH_W,
        height=DEPTH_H,
        layout=probe_layout(renderer),
        queue_size=args.queue_size,
        overload=args.overload,
        provider=args.provider,
        device=args.device,
    )
    pipeline.start()

    timer = FPSTimer()
    stats = TimingStats(warmup=args.warmup, target_fps=args.target_fps)
    frame_idx = 0
    last_frame = None

    try:
        while True:
            t0 = time.perf_counter()
            ret, frame = source.read()
            t1 = time.perf_counter()
            if not ret and getattr(source, "finished", False):
                break

            pipeline.tick(frame if ret else None)
            t2 = time.perf_counter()
            pipeline.drain()
            t3 = time.perf_counter()

            fps = timer.update()
            if ret:
                last_frame = frame
                renderer.render(
                    frame,
                    pipeline.state.depth,
                    config.effective_depth_scale,
                    overlay=f"FPS: {fps:.2f}",
                )
            if not args.no_display:
                if not handle_key(cv2.waitKey(1) & 0xFF, config):
                    break
            t4 = time.perf_counter()

            frame_idx += 1
            if args.max_frames > 0 and frame_idx >= args.max_frames:
                break

            recorded = stats.record(
                read=(t1 - t0) * 1000.0,
                sample=(t2 - t1) * 1000.0,
                drain=(t3 - t2) * 1000.0,
                render=(t4 - t3) * 1000.0,
            )
            if recorded and args.timing_interval > 0 and stats.frames % args.timing_interval == 0:
                print(stats.format(depth=pipeline.depth_frames, dropped=pipeline.dropped))
    finally:
        pipeline.stop()
        source.release()
        renderer.close()

    if args.timing_interval > 0 and stats.frames % args.timing_interval != 0:
        print(stats.format(depth=pipeline.depth_frames, dropped=pipeline.dropped))

    if args.export_ply and last_frame is not None:
        count = export_ply(
            args.export_ply,
            last_frame,
            pipeline.state.depth.depth(),
            config.effective_depth_scale,
        )
        logger.info(f"Wrote {count} vertices to {args.export_ply}")


if __name__ == "__main__":
    main()
