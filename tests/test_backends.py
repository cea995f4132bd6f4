import sys
import tempfile
import types
import unittest
from pathlib import Path
from unittest import mock

import numpy as np

from yolo_detector.backends.litert_backend import LiteRTBackend, LiteRTBackendConfig, spec_from_details
from yolo_detector.backends.onnxruntime_backend import _dtype, _static_shape, select_providers
from yolo_detector.errors import ModelFormatError
from yolo_detector.runtime import backend_for_path, create_backend, find_project_root, resolve_path


class TestLiteRTDetails(unittest.TestCase):
    def test_float_tensor_has_no_quantization(self) -> None:
        spec = spec_from_details(
            {"shape": np.array([1, 640, 640, 3]), "dtype": np.float32, "quantization": (0.0, 0)}
        )
        self.assertEqual(spec.shape, (1, 640, 640, 3))
        self.assertEqual(spec.dtype, np.float32)
        self.assertIsNone(spec.quantization)

    def test_quantized_tensor(self) -> None:
        spec = spec_from_details({"shape": [1, 84, 8400], "dtype": np.int8, "quantization": (0.0078125, -128)})
        self.assertTrue(spec.is_integer)
        self.assertEqual(spec.quantization.scale, 0.0078125)
        self.assertEqual(spec.quantization.zero_point, -128)


def _fake_litert(created, delegate_error=None, gpu_alloc_error=None, cpu_error=None):
    """Stand-in for `ai_edge_litert.interpreter` recording every interpreter built."""

    class Interpreter:
        def __init__(self, model_path, num_threads=None, experimental_delegates=None):
            self.model_path = model_path
            self.num_threads = num_threads
            self.delegates = list(experimental_delegates or [])
            created.append(self)

        def allocate_tensors(self):
            if self.delegates and gpu_alloc_error is not None:
                raise gpu_alloc_error
            if not self.delegates and cpu_error is not None:
                raise cpu_error

        def get_input_details(self):
            return [{"index": 0, "shape": np.array([1, 32, 32, 3]), "dtype": np.float32, "quantization": (0.0, 0)}]

        def get_output_details(self):
            return [{"index": 1, "shape": np.array([1, 6, 16]), "dtype": np.float32, "quantization": (0.0, 0)}]

    def load_delegate(name):
        if delegate_error is not None:
            raise delegate_error
        return ("delegate", name)

    module = types.ModuleType("ai_edge_litert.interpreter")
    module.Interpreter = Interpreter
    module.load_delegate = load_delegate
    package = types.ModuleType("ai_edge_litert")
    package.interpreter = module
    return {"ai_edge_litert": package, "ai_edge_litert.interpreter": module}


class TestLiteRTBackend(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.model = Path(self._tmp.name) / "model.tflite"
        self.model.write_bytes(b"")
        self.created = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _open(self, cfg=LiteRTBackendConfig(), **errors) -> LiteRTBackend:
        with mock.patch.dict(sys.modules, _fake_litert(self.created, **errors)):
            return LiteRTBackend(self.model, cfg)

    def test_gpu_delegate_is_used_when_it_loads(self) -> None:
        backend = self._open()
        self.assertEqual(backend.device, "gpu")
        self.assertEqual(len(self.created), 1)
        self.assertEqual(len(self.created[0].delegates), 1)
        self.assertEqual(backend.input_spec.shape, (1, 32, 32, 3))
        self.assertEqual(backend.output_spec.shape, (1, 6, 16))

    def test_missing_delegate_falls_back_to_cpu(self) -> None:
        with self.assertLogs("yolo_detector.backends.litert_backend", level="WARNING"):
            backend = self._open(delegate_error=OSError("libtensorflowlite_gpu_delegate.so not found"))
        self.assertEqual(backend.device, "cpu")
        self.assertEqual([i.delegates for i in self.created], [[]])

    def test_delegate_rejecting_graph_falls_back_to_cpu(self) -> None:
        with self.assertLogs("yolo_detector.backends.litert_backend", level="WARNING"):
            backend = self._open(gpu_alloc_error=RuntimeError("unsupported op"))
        self.assertEqual(backend.device, "cpu")
        self.assertEqual(len(self.created), 2)
        self.assertEqual(self.created[-1].delegates, [])
        self.assertIsNone(backend._delegate)
        self.assertEqual(backend.output_spec.shape, (1, 6, 16))

    def test_accelerator_disabled_skips_delegate(self) -> None:
        backend = self._open(LiteRTBackendConfig(use_accelerator=False), delegate_error=AssertionError("not called"))
        self.assertEqual(backend.device, "cpu")
        self.assertEqual(len(self.created), 1)

    def test_cpu_failure_is_a_model_format_error(self) -> None:
        with self.assertRaises(ModelFormatError):
            self._open(LiteRTBackendConfig(use_accelerator=False), cpu_error=ValueError("bad flatbuffer"))


class TestOnnxRuntimeHelpers(unittest.TestCase):
    def test_prefers_cuda_when_available(self) -> None:
        providers = select_providers(["CUDAExecutionProvider", "CPUExecutionProvider"], use_accelerator=True)
        self.assertEqual(providers, ["CUDAExecutionProvider", "CPUExecutionProvider"])

    def test_falls_back_to_cpu_with_warning(self) -> None:
        with self.assertLogs("yolo_detector.backends.onnxruntime_backend", level="WARNING"):
            providers = select_providers(["CPUExecutionProvider"], use_accelerator=True)
        self.assertEqual(providers, ["CPUExecutionProvider"])

    def test_cpu_only_when_accelerator_disabled(self) -> None:
        providers = select_providers(["CUDAExecutionProvider", "CPUExecutionProvider"], use_accelerator=False)
        self.assertEqual(providers, ["CPUExecutionProvider"])

    def test_explicit_providers_win(self) -> None:
        self.assertEqual(select_providers([], True, ["CoreMLExecutionProvider"]), ["CoreMLExecutionProvider"])

    def test_dynamic_shapes_are_rejected(self) -> None:
        self.assertEqual(_static_shape([1, 3, 640, 640], "input"), (1, 3, 640, 640))
        with self.assertRaises(ModelFormatError):
            _static_shape(["batch", 3, 640, 640], "input")

    def test_dtype_mapping(self) -> None:
        self.assertEqual(_dtype("tensor(uint8)", "input"), np.uint8)
        with self.assertRaises(ModelFormatError):
            _dtype("tensor(float16)", "input")


class TestRuntime(unittest.TestCase):
    def test_backend_from_extension(self) -> None:
        self.assertEqual(backend_for_path("models/yolov8n_int8.tflite"), "litert")
        self.assertEqual(backend_for_path("yolov8n.ONNX"), "onnxruntime")
        self.assertEqual(backend_for_path("yolov8n.torchscript"), "torchscript")
        with self.assertRaises(ValueError):
            backend_for_path("yolov8n.engine")

    def test_unsupported_backend_name(self) -> None:
        with self.assertRaises(ValueError):
            create_backend("model.bin", "tensorrt")

    def test_resolve_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "pyproject.toml").write_text("", encoding="utf-8")
            (root / "models").mkdir()
            self.assertEqual(find_project_root(root / "models"), root)
            self.assertEqual(resolve_path("models/a.tflite", root=root), root / "models" / "a.tflite")
            absolute = root / "b.onnx"
            self.assertEqual(resolve_path(absolute), absolute)


if __name__ == "__main__":
    unittest.main()
