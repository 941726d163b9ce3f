import argparse

import torch

from depth_relief.config import DEFAULT_MODEL_PATH, DEPTH_H, DEPTH_W


def parse_args():
    parser = argparse.ArgumentParser(description="Export MiDaS small to a static-shape ONNX model")
    parser.add_argument("--output", default=DEFAULT_MODEL_PATH)
    parser.add_argument("--variant", default="MiDaS_small", help="torch hub entry in intel-isl/MiDaS")
    parser.add_argument("--size", type=int, default=DEPTH_W, help="Square input size (must match the pipeline)")
    parser.add_argument("--opset", type=int, default=17)
    parser.add_argument(
        "--torchscript",
        default="",
        help="Also save a TorchScript trace to this path (.pt)"
    )
    return parser.parse_args()


def main():
    args = parse_args()
    if args.size != DEPTH_W or args.size != DEPTH_H:
        print(f"Warning: pipeline captures {DEPTH_W}x{DEPTH_H}, exporting {args.size}x{args.size}")

    model = torch.hub.load("intel-isl/MiDaS", args.variant)
    model.eval()
    print("Model loaded.")

    dummy_input = torch.rand(1, 3, args.size, args.size)

    print("Exporting to ONNX...")
    torch.onnx.export(
        model,
        dummy_input,
        args.output,
        input_names=["input"],
        output_names=["depth"],
        opset_version=args.opset,
        do_constant_folding=True,
        dynamic_axes=None,
    )
    print(f"ONNX export complete: {args.output}")

    if args.torchscript:
        with torch.no_grad():
            traced = torch.jit.trace(model, dummy_input)
        traced.save(args.torchscript)
        print(f"TorchScript export complete: {args.torchscript}")


if __name__ == "__main__":
    main()
