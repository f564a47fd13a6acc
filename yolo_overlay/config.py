import os
import tempfile

# --- Configuration ---
IS_DEBUG_MODE = False # Overridden by run_app.py when --debug is passed
DEBUG_LOG_FILE = 'debug.log' # Created in the directory run_app.py is executed from.

# PACKAGE_DIR is the 'yolo_overlay/' directory.
PACKAGE_DIR = os.path.abspath(os.path.dirname(__file__))

# Packaged (read-only) assets shipped next to the code.
ASSET_ROOT = os.path.join(PACKAGE_DIR, 'assets')

# Writable per-user directory that packaged assets are materialized into on first use.
WRITABLE_ROOT = os.path.join(os.path.expanduser('~'), '.yolo_overlay')

# Relative to ASSET_ROOT; copied to WRITABLE_ROOT/<same relative path> before loading.
MODEL_ASSET_PATH = os.path.join('models', 'yolo11n.pt')

DEFAULT_VIDEO_PATH = os.path.join(ASSET_ROOT, 'sample.mp4')
LOOP_VIDEO = True

# --- Sampling Pipeline ---
SAMPLING_INTERVAL_MS = 100
ACCELERATOR = 'gpu' # 'gpu' or 'cpu'; gpu falls back to cpu when no device is present
FRAME_CACHE_RETENTION = 50

# Captured frames are ephemeral artifacts, so they live in the system temp dir.
FRAME_CAPTURE_DIR = os.path.join(tempfile.gettempdir(), 'yolo_overlay_frames')
FRAME_IMAGE_FORMAT = '.png' # '.png' or '.jpg'
FRAME_JPEG_QUALITY = 90

# --- Default Thresholds ---
DEFAULT_IOU_THRESHOLD = 0.45
DEFAULT_CONF_THRESHOLD = 0.25
CLASS_FILTER_INDICES = None # None means all classes the model knows

# --- Overlay Drawing (BGR) ---
OVERLAY_BOX_COLOR = (54, 67, 244) # red
OVERLAY_TEXT_COLOR = (255, 255, 255)
OVERLAY_BOX_THICKNESS = 2
OVERLAY_FONT_SCALE = 0.5
OVERLAY_TEXT_PADDING = 3

# --- Material Design Color System ---
COLOR_BACKGROUND = '#FAFAFA'
COLOR_BACKGROUND_LIGHT = '#F5F5F5'
COLOR_TEXT_SECONDARY = '#757575'
COLOR_TEXT_DISABLED = '#9E9E9E'
COLOR_ERROR = '#F44336'

# --- Spacing & Layout ---
SPACING_MEDIUM = 16

DEFAULT_VIDEO_WIDTH = 640
DEFAULT_VIDEO_HEIGHT = 480

# --- Typography ---
FONT_FAMILY_PRIMARY = "Segoe UI"
FONT_TITLE = (FONT_FAMILY_PRIMARY, 20, "bold")
FONT_BODY = (FONT_FAMILY_PRIMARY, 12, "normal")
FONT_CAPTION = (FONT_FAMILY_PRIMARY, 10, "normal")

# UI refresh cadence for the display loop (ms)
DISPLAY_REFRESH_MS = 33
