import argparse
import json
import logging
from dataclasses import replace

import cv2

from yolo_detector import DetectorConfig, load_detector, load_detector_config, load_labels


def main() -> int:
    parser = argparse.ArgumentParser(description="Run YOLO detection on one image and print detections as JSON lines.")
    parser.add_argument("--model", required=True, help="Path to a YOLO model (.tflite/.onnx/.torchscript).")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--config", default=None, help="Optional detector config JSON.")
    parser.add_argument("--labels", default=None, help="Labels file (metadata.yaml names mapping or one per line).")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--threads", type=int, default=None, help="Inference thread count.")
    parser.add_argument("--cpu", action="store_true", help="Do not try GPU / accelerator backends.")
    parser.add_argument("--layout", choices=("auto", "raw", "fused"), default=None, help="Force output layout.")
    parser.add_argument("--backend", default=None, help="Force backend: litert / onnxruntime / torchscript.")
    parser.add_argument("--imgsz", type=int, default=640, help="Input size for TorchScript models.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    base = load_detector_config(args.config) if args.config else DetectorConfig()
    overrides = {}
    if args.conf is not None:
        overrides["conf_threshold"] = args.conf
    if args.iou is not None:
        overrides["iou_threshold"] = args.iou
    if args.threads is not None:
        overrides["num_threads"] = args.threads
    if args.cpu:
        overrides["use_accelerator_if_available"] = False
    if args.layout is not None:
        overrides["output_layout"] = args.layout
    if args.labels:
        overrides["labels"] = load_labels(args.labels)
    # OpenCV decodes to BGR.
    overrides["input_order"] = "bgr"
    cfg = replace(base, **overrides)

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    with load_detector(args.model, cfg, backend=args.backend, torch_input_size=args.imgsz) as detector:
        detections = detector.detect(img)
        for det in detections:
            print(
                json.dumps(
                    {
                        "label": detector.get_label(det.class_id),
                        "class_id": det.class_id,
                        "score": round(det.score, 4),
                        "box": [round(v, 2) for v in det.box],
                    }
                )
            )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
