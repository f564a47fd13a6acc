import math

import cv2
import pytest

from conftest import FakeBoxes, FakeYoloModel, make_frame
from yolo_overlay.core.errors import InferenceFailure, InvalidInput, ModelLoadError, ModelNotReady
from yolo_overlay.core.types import BoundingBox, FrameHandle
from yolo_overlay.processing.detector_service import DetectorService


@pytest.fixture
def frame_handle(tmp_path):
    path = tmp_path / "frame_1.png"
    cv2.imwrite(str(path), make_frame(100, 120))
    return FrameHandle(path=str(path), captured_at_ns=1, sequence=1)


def _service_with(model, **kwargs):
    calls = []

    def factory(accelerator):
        calls.append(accelerator)
        return model, 'cpu'

    service = DetectorService(model_factory=factory, **kwargs)
    return service, calls


def test_detect_before_load_raises_model_not_ready(frame_handle):
    service, _ = _service_with(FakeYoloModel())

    with pytest.raises(ModelNotReady):
        service.detect(frame_handle)


def test_load_is_one_time(frame_handle):
    service, calls = _service_with(FakeYoloModel())

    service.load_model('gpu')
    service.load_model('gpu')

    assert calls == ['gpu']
    assert service.is_ready
    assert service.wait_until_ready(timeout=0)


def test_load_failure_is_reported_as_model_load_error():
    def broken_factory(accelerator):
        raise RuntimeError("weights corrupted")

    service = DetectorService(model_factory=broken_factory)

    with pytest.raises(ModelLoadError, match="weights corrupted"):
        service.load_model('cpu')
    assert not service.is_ready


def test_converts_xyxy_boxes_to_labelled_detections(frame_handle):
    boxes = FakeBoxes(xyxy=[[10, 10, 60, 90], [5, 6, 7, 8]], conf=[0.9, 0.4], cls=[0, 7])
    model = FakeYoloModel(boxes=boxes, names={0: 'person', 2: 'car'})
    service, _ = _service_with(model, conf_threshold=0.3, iou_threshold=0.5)
    service.load_model('cpu')

    detections = service.detect(frame_handle)

    assert [d.label for d in detections] == ['person', 'CLS_IDX_7']
    assert detections[0].box == BoundingBox(10, 10, 50, 80)
    assert detections[0].confidence == pytest.approx(0.9)
    shape, kwargs = model.predict_calls[0]
    assert shape == (120, 100, 3)
    assert kwargs['conf'] == 0.3
    assert kwargs['iou'] == 0.5
    assert kwargs['device'] == 'cpu'


def test_list_style_class_names(frame_handle):
    model = FakeYoloModel(boxes=FakeBoxes([[0, 0, 4, 4]], [0.8], [1]), names=['person', 'bicycle'])
    service, _ = _service_with(model)
    service.load_model('cpu')

    assert [d.label for d in service.detect(frame_handle)] == ['bicycle']


def test_malformed_rows_are_dropped(frame_handle):
    boxes = FakeBoxes(xyxy=[[math.nan, 0, 4, 4], [0, 0, 4, 4]], conf=[0.9, 0.8], cls=[0, 0])
    service, _ = _service_with(FakeYoloModel(boxes=boxes))
    service.load_model('cpu')

    detections = service.detect(frame_handle)

    assert len(detections) == 1
    assert detections[0].confidence == pytest.approx(0.8)


def test_empty_result_gives_no_detections(frame_handle):
    service, _ = _service_with(FakeYoloModel())
    service.load_model('cpu')

    assert service.detect(frame_handle) == []


def test_repeated_calls_on_same_handle_agree(frame_handle):
    boxes = FakeBoxes([[10, 10, 60, 90]], [0.9], [0])
    service, _ = _service_with(FakeYoloModel(boxes=boxes))
    service.load_model('cpu')

    assert service.detect(frame_handle) == service.detect(frame_handle)


def test_missing_file_is_invalid_input(tmp_path):
    service, _ = _service_with(FakeYoloModel())
    service.load_model('cpu')

    with pytest.raises(InvalidInput):
        service.detect(FrameHandle(path=str(tmp_path / "gone.png"), captured_at_ns=1, sequence=1))


def test_undecodable_file_is_invalid_input(tmp_path):
    path = tmp_path / "garbage.png"
    path.write_bytes(b"definitely not a png")
    service, _ = _service_with(FakeYoloModel())
    service.load_model('cpu')

    with pytest.raises(InvalidInput):
        service.detect(FrameHandle(path=str(path), captured_at_ns=1, sequence=1))


def test_model_exception_is_inference_failure(frame_handle):
    service, _ = _service_with(FakeYoloModel(error=RuntimeError("CUDA out of memory")))
    service.load_model('gpu')

    with pytest.raises(InferenceFailure, match="CUDA out of memory"):
        service.detect(frame_handle)
