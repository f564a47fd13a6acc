import cv2

from yolo_overlay import config
from yolo_overlay.core.types import Detection, OverlayElement, OverlayState
from yolo_overlay.utils.logger_setup import log_debug


def _is_renderable(detection):
    if not isinstance(detection, Detection):
        return False
    return detection.has_valid_confidence and not detection.box.is_degenerate


def reduce(batch):
    """Turn one DetectionBatch into the OverlayState that replaces the current one.

    Entries that are None, have a degenerate box or a confidence outside
    (0, 1] are left out. Depends only on `batch`.
    """
    detections = batch.detections or ()
    elements = tuple(
        OverlayElement(label=d.label, confidence=d.confidence, box=d.box)
        for d in detections
        if _is_renderable(d)
    )
    skipped = len(detections) - len(elements)
    if skipped:
        log_debug(f"Overlay reducer discarded {skipped} of {len(detections)} detections for frame {batch.frame_handle.sequence}")
    return OverlayState(frame_handle=batch.frame_handle, elements=elements, produced_at=batch.produced_at)


def annotate_frame(frame, overlay):
    """Draw `overlay` onto a copy of a BGR frame: box plus a white caption on a filled label."""
    annotated_frame = frame.copy()
    if overlay is None or overlay.is_empty:
        return annotated_frame

    font_face = cv2.FONT_HERSHEY_SIMPLEX
    font_scale = config.OVERLAY_FONT_SCALE
    padding = config.OVERLAY_TEXT_PADDING
    for element in overlay.elements:
        x1, y1, x2, y2 = (int(round(v)) for v in element.box.as_xyxy())
        cv2.rectangle(annotated_frame, (x1, y1), (x2, y2), config.OVERLAY_BOX_COLOR, config.OVERLAY_BOX_THICKNESS)

        (text_width, text_height), baseline = cv2.getTextSize(element.caption, font_face, font_scale, 1)
        label_top = max(y1 - text_height - baseline - 2 * padding, 0)
        label_bottom = label_top + text_height + baseline + 2 * padding
        cv2.rectangle(annotated_frame, (x1, label_top), (x1 + text_width + 2 * padding, label_bottom),
                      config.OVERLAY_BOX_COLOR, cv2.FILLED)
        cv2.putText(annotated_frame, element.caption, (x1 + padding, label_bottom - baseline - padding),
                    font_face, font_scale, config.OVERLAY_TEXT_COLOR, 1, cv2.LINE_AA)
    return annotated_frame
