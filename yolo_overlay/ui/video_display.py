"""
Tkinter widget that shows BGR frames scaled to fit, with an optional overlay.
"""
import tkinter as tk
from tkinter import ttk

import cv2
from PIL import Image, ImageTk

from yolo_overlay import config
from yolo_overlay.processing.overlay_reducer import annotate_frame
from yolo_overlay.utils.logger_setup import log_debug


class VideoDisplayFrame(ttk.Frame):
    def __init__(self, parent, initial_width=None, initial_height=None, **kwargs):
        super().__init__(parent, **kwargs)
        self.display_label = ttk.Label(self, background=config.COLOR_BACKGROUND_LIGHT, anchor="center")
        self.display_label.pack(expand=True, fill="both")
        self.current_photo_image = None
        self.last_displayed_frame_raw = None
        self.last_overlay = None
        self.target_width = initial_width or config.DEFAULT_VIDEO_WIDTH
        self.target_height = initial_height or config.DEFAULT_VIDEO_HEIGHT
        self._update_empty_display()
        self.bind("<Configure>", self._on_resize_display)

    def _on_resize_display(self, event):
        if event.width > 1 and event.height > 1 and \
           (abs(event.width - self.target_width) > 1 or abs(event.height - self.target_height) > 1):
            self.target_width = event.width
            self.target_height = event.height
            if self.last_displayed_frame_raw is not None:
                self._display_cv2_frame(self.last_displayed_frame_raw)

    def _update_empty_display(self):
        w = max(1, int(self.target_width))
        h = max(1, int(self.target_height))
        empty_pil_image = Image.new("RGB", (w, h), config.COLOR_TEXT_DISABLED)
        self.current_photo_image = ImageTk.PhotoImage(empty_pil_image)
        self.display_label.config(image=self.current_photo_image, text="")

    def _display_cv2_frame(self, cv2_frame_bgr):
        if not self.winfo_exists():
            return
        # Overlay coordinates are in source-frame pixels, so draw before resizing
        frame = annotate_frame(cv2_frame_bgr, self.last_overlay)
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        pil_image_original = Image.fromarray(frame_rgb)

        original_width, original_height = pil_image_original.size
        if original_width == 0 or original_height == 0:
            self._update_empty_display()
            return

        aspect_ratio = original_width / original_height
        new_width = max(1, int(self.target_width))
        new_height = int(new_width / aspect_ratio)
        if new_height > self.target_height:
            new_height = int(self.target_height)
            new_width = int(new_height * aspect_ratio)

        resized_pil_image = pil_image_original.resize((max(1, new_width), max(1, new_height)), Image.Resampling.LANCZOS)
        self.current_photo_image = ImageTk.PhotoImage(resized_pil_image)
        self.display_label.config(image=self.current_photo_image, text="")

    def update_frame(self, new_cv2_frame_bgr):
        if new_cv2_frame_bgr is None:
            return
        self.last_displayed_frame_raw = new_cv2_frame_bgr
        self._display_cv2_frame(new_cv2_frame_bgr)

    def update_overlay(self, overlay):
        self.last_overlay = overlay
        if self.last_displayed_frame_raw is not None:
            self._display_cv2_frame(self.last_displayed_frame_raw)

    def show_message(self, message):
        log_debug(f"VideoDisplayFrame message: {message}")
        self.current_photo_image = None
        self.display_label.config(image="", text=message, foreground=config.COLOR_ERROR,
                                  font=config.FONT_BODY, wraplength=max(200, int(self.target_width) - 40))

    def clear(self):
        self.last_displayed_frame_raw = None
        self.last_overlay = None
        self._update_empty_display()
