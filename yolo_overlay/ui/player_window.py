"""
Player window: video display, play/pause button and status line.

Pipeline callbacks arrive on worker threads. They only drop the newest overlay
or error into a one-slot deque; the Tk refresh loop picks them up. Calling into
Tk from those threads could block on the main thread while it waits for the
pipeline to stop.
"""
import threading
import tkinter as tk
from collections import deque
from tkinter import ttk

from yolo_overlay import config
from yolo_overlay.core.pipeline_session import PipelineController, PipelineSettings
from yolo_overlay.core.types import PlaybackState
from yolo_overlay.processing.detector_service import DetectorService
from yolo_overlay.processing.frame_source import VideoFileSource
from yolo_overlay.ui.video_display import VideoDisplayFrame
from yolo_overlay.utils.logger_setup import log_debug


class PlayerWindow:
    def __init__(self, root, video_path=None, settings=None, detector=None):
        self.root = root
        self.settings = settings or PipelineSettings.from_config()
        self.source = VideoFileSource(video_path or config.DEFAULT_VIDEO_PATH)
        self.detector = detector or DetectorService()
        self.controller = PipelineController(self.source, self.detector, settings=self.settings)
        self._refresh_job = None
        self._pending_overlay = deque(maxlen=1)  # Only the latest overlay is worth drawing
        self._pending_error = deque(maxlen=1)
        self._build_layout()

    def _build_layout(self):
        self.root.title("YOLO Video Player")
        self.root.geometry("900x700")
        self.root.configure(background=config.COLOR_BACKGROUND)

        app_frame = ttk.Frame(self.root, padding=config.SPACING_MEDIUM)
        app_frame.pack(fill="both", expand=True)
        app_frame.columnconfigure(0, weight=1)
        app_frame.rowconfigure(1, weight=1)

        ttk.Label(app_frame, text="YOLO Video Player", font=config.FONT_TITLE).grid(
            row=0, column=0, sticky="w", pady=(0, config.SPACING_MEDIUM))

        self.video_display = VideoDisplayFrame(app_frame)
        self.video_display.grid(row=1, column=0, sticky="nsew")

        controls = ttk.Frame(app_frame)
        controls.grid(row=2, column=0, sticky="ew", pady=(config.SPACING_MEDIUM, 0))
        controls.columnconfigure(1, weight=1)

        self.play_button = ttk.Button(controls, text="Play", command=self.on_play_pause, state="disabled")
        self.play_button.grid(row=0, column=0, padx=(0, config.SPACING_MEDIUM))
        self.status_label = ttk.Label(controls, text="Loading model...", font=config.FONT_CAPTION,
                                      foreground=config.COLOR_TEXT_SECONDARY)
        self.status_label.grid(row=0, column=1, sticky="w")

    def start(self):
        if not self.source.open():
            self.video_display.show_message(f"Error loading video: {self.source.video_path}")
            self.status_label.config(text="Video unavailable")
            return

        self.video_display.update_frame(self.source.current_frame())
        self.controller.add_overlay_listener(self._pending_overlay.append)
        self.controller.add_error_listener(self._pending_error.append)

        threading.Thread(target=self._load_model_task, name="ModelLoad", daemon=True).start()
        self._schedule_refresh()

    def _load_model_task(self):
        try:
            self.controller.prepare()
        except Exception as e:
            log_debug(f"Model load failed: {e}", exc_info=True)
            self.root.after(0, self._on_model_failed, e)
            return
        self.root.after(0, self._on_model_ready)

    def _on_model_ready(self):
        self.status_label.config(text=f"Model ready on {self.detector.device}")
        self.controller.bind()
        self.play_button.config(state="normal")
        self.source.play()

    def _on_model_failed(self, error):
        # Blocking error state: the pipeline is never started
        self.status_label.config(text="Detector unavailable", foreground=config.COLOR_ERROR)
        self.video_display.show_message(f"Could not initialize detector:\n{error}")
        self.play_button.config(state="disabled")

    def on_play_pause(self):
        self.source.toggle()

    def _sync_play_button(self, state):
        text = "Pause" if state == PlaybackState.PLAYING else "Play"
        if self.play_button.cget("text") != text:
            self.play_button.config(text=text)

    def _on_overlay(self, overlay):
        self.video_display.update_overlay(overlay)
        self.status_label.config(text=f"{len(overlay)} objects (frame {overlay.frame_handle.sequence})",
                                 foreground=config.COLOR_TEXT_SECONDARY)

    def _on_pipeline_error(self, error):
        self.status_label.config(text=f"Skipped frame: {type(error).__name__}")

    def _schedule_refresh(self):
        state = self.source.playback_state()
        self._sync_play_button(state)
        if self._pending_error:
            self._on_pipeline_error(self._pending_error.popleft())
        if self._pending_overlay:
            self._on_overlay(self._pending_overlay.popleft())
        if state == PlaybackState.PLAYING:
            self.video_display.update_frame(self.source.current_frame())
        self._refresh_job = self.root.after(config.DISPLAY_REFRESH_MS, self._schedule_refresh)

    def close(self):
        log_debug("Application closing...")
        if self._refresh_job is not None:
            self.root.after_cancel(self._refresh_job)
            self._refresh_job = None
        self.controller.dispose()
        self.source.release()
        if self.root.winfo_exists():
            self.root.destroy()


def launch_app(video_path=None):
    log_debug("Launching application...")
    root = tk.Tk()
    style = ttk.Style()
    try:
        style.theme_use('clam')
    except tk.TclError:
        log_debug("'clam' theme not available, using default.")
    window = PlayerWindow(root, video_path=video_path)
    root.protocol("WM_DELETE_WINDOW", window.close)
    window.start()
    log_debug("Starting Tkinter main loop...")
    root.mainloop()
    log_debug("Application exited main loop.")
