import math
import threading
import time

import cv2

from yolo_overlay import config
from yolo_overlay.core.errors import InferenceFailure, InvalidInput, ModelLoadError, ModelNotReady
from yolo_overlay.core.types import BoundingBox, Detection
from yolo_overlay.processing.model_loader import load_yolo_model, resolve_model_path
from yolo_overlay.utils.logger_setup import log_debug


class DetectorService:
    """Binds a YOLO model to frame handles.

    The model is loaded once through load_model(); until that has succeeded
    detect() raises ModelNotReady. `model_factory(accelerator)` must return
    `(model, device)` and defaults to loading the configured YOLO weights.
    """

    def __init__(self, model_factory=None, model_asset_path=None, conf_threshold=None,
                 iou_threshold=None, class_filter=None):
        self.model_asset_path = model_asset_path or config.MODEL_ASSET_PATH
        self._model_factory = model_factory or self._load_configured_model
        self.conf_threshold = config.DEFAULT_CONF_THRESHOLD if conf_threshold is None else conf_threshold
        self.iou_threshold = config.DEFAULT_IOU_THRESHOLD if iou_threshold is None else iou_threshold
        self.class_filter = config.CLASS_FILTER_INDICES if class_filter is None else class_filter
        self.device = None
        self.class_names = {}
        self._model = None
        self._ready = threading.Event()
        self._load_lock = threading.Lock()
        self._inference_lock = threading.Lock()

    def _load_configured_model(self, accelerator):
        model_path = resolve_model_path(self.model_asset_path)
        return load_yolo_model(model_path, accelerator)

    @property
    def is_ready(self):
        return self._ready.is_set()

    def wait_until_ready(self, timeout=None):
        return self._ready.wait(timeout)

    def load_model(self, accelerator=None):
        accelerator = accelerator or config.ACCELERATOR
        with self._load_lock:
            if self._ready.is_set():
                log_debug("load_model: model already loaded, nothing to do.")
                return
            t_start = time.perf_counter()
            try:
                model, device = self._model_factory(accelerator)
            except ModelLoadError:
                raise
            except Exception as e:
                raise ModelLoadError(f"Detector initialization failed: {e}") from e
            if model is None:
                raise ModelLoadError("Detector initialization returned no model")
            self._model = model
            self.device = device
            names = getattr(model, 'names', None) or {}
            self.class_names = dict(enumerate(names)) if isinstance(names, (list, tuple)) else dict(names)
            self._ready.set()
            log_debug(f"Detector ready on {device} in {(time.perf_counter() - t_start) * 1000:.1f}ms")

    def detect(self, handle):
        if not self._ready.is_set():
            raise ModelNotReady("detect() called before the model finished loading")

        image = cv2.imread(handle.path, cv2.IMREAD_COLOR)
        if image is None:
            raise InvalidInput(f"Frame {handle.path} is missing or not a decodable image")

        t_pred_start = time.perf_counter()
        try:
            with self._inference_lock:
                results = self._model.predict(
                    image,
                    classes=self.class_filter,
                    conf=self.conf_threshold,
                    iou=self.iou_threshold,
                    device=self.device,
                    verbose=False,
                )
        except Exception as e:
            raise InferenceFailure(f"Inference failed for {handle.path}: {e}") from e

        t_pred_time = (time.perf_counter() - t_pred_start) * 1000
        if t_pred_time > 100:
            log_debug(f"YOLO prediction took {t_pred_time:.1f}ms")

        result = results[0] if results else None
        return self._to_detections(result)

    def _to_detections(self, result):
        if result is None or getattr(result, 'boxes', None) is None or len(result.boxes) == 0:
            return []

        boxes = result.boxes.xyxy.cpu().numpy()
        confidences = result.boxes.conf.cpu().numpy()
        class_indices = result.boxes.cls.cpu().numpy()

        detections = []
        dropped = 0
        for i in range(len(boxes)):
            coords = [float(v) for v in boxes[i][:4]]
            conf = float(confidences[i]) if i < len(confidences) else math.nan
            cls_value = float(class_indices[i]) if i < len(class_indices) else math.nan
            if len(coords) < 4 or not all(math.isfinite(v) for v in coords) or not math.isfinite(cls_value):
                dropped += 1
                continue
            class_idx = int(cls_value)
            label = self.class_names.get(class_idx, f"CLS_IDX_{class_idx}")
            detections.append(Detection(label=label, confidence=conf, box=BoundingBox.from_xyxy(*coords)))

        if dropped:
            log_debug(f"Dropped {dropped} malformed detection entries")
        return detections
