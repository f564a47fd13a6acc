"""
YOLO video overlay: samples frames from a playing video, runs them through an
object detector and publishes the boxes as an overlay.
"""

__version__ = "1.0.0"
