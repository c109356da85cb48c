"""Fullscreen projector output and operator preview window."""

import tkinter as tk
from typing import Callable, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageTk

from procam_calib.calibration.devices import TriggerEvent
from procam_calib.calibration.errors import DeviceError

CONFIRM_KEYS = (10, 13)  # Enter
CANCEL_KEYS = (27, ord("q"))


class ProjectorDisplay:
    """Shows projector patterns in a borderless fullscreen window.

    Monitors right of the primary screen are reached by offsetting the
    window by the primary screen width.
    """

    def __init__(self, settle_ms: int = 0):
        """Initialize display handler.

        Args:
            settle_ms: Extra time to pump GUI events after each pattern
        """
        self.root: Optional[tk.Tk] = None
        self.canvas: Optional[tk.Canvas] = None
        self.photo_image: Optional[ImageTk.PhotoImage] = None
        self.size: Tuple[int, int] = (0, 0)
        self.settle_ms = settle_ms

    def start_fullscreen(
        self,
        monitor_index: int = 0,
        resolution: Optional[Tuple[int, int]] = None,
    ) -> Tuple[int, int]:
        """Open the fullscreen window.

        Args:
            monitor_index: Index of monitor to use (0 = primary)
            resolution: Projector (width, height); defaults to the screen size

        Returns:
            (width, height) of the window
        """
        try:
            self.root = tk.Tk()
        except tk.TclError as e:
            raise DeviceError(f"Cannot open projector window: {e}") from e
        self.root.withdraw()

        screen_w = self.root.winfo_screenwidth()
        screen_h = self.root.winfo_screenheight()
        width, height = resolution if resolution else (screen_w, screen_h)

        x_offset = screen_w if monitor_index > 0 else 0

        self.root.overrideredirect(True)
        self.root.geometry(f"{width}x{height}+{x_offset}+0")
        self.root.attributes("-topmost", True)
        self.root.configure(bg="black")

        self.canvas = tk.Canvas(
            self.root,
            width=width,
            height=height,
            bg="black",
            highlightthickness=0,
        )
        self.canvas.pack(fill=tk.BOTH, expand=True)

        self.root.deiconify()
        self.root.update()
        self.size = (width, height)

        return self.size

    def project_image(self, image: np.ndarray) -> None:
        """Display a gray or BGR image on the fullscreen canvas."""
        if self.root is None or self.canvas is None:
            raise RuntimeError("Projector display is not running")

        if image.ndim == 2:
            rgb_image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        else:
            rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        self.photo_image = ImageTk.PhotoImage(Image.fromarray(rgb_image))

        self.canvas.delete("all")
        self.canvas.create_image(
            self.size[0] // 2,
            self.size[1] // 2,
            image=self.photo_image,
            anchor=tk.CENTER,
        )

        self.root.update_idletasks()
        self.root.update()
        if self.settle_ms:
            self.root.after(self.settle_ms)

    def refresh(self) -> None:
        """Pump pending window events while no new pattern is shown."""
        if self.root is not None:
            self.root.update()

    def get_width(self) -> int:
        return self.size[0]

    def get_height(self) -> int:
        return self.size[1]

    def stop(self) -> None:
        """Close the fullscreen window."""
        if self.root:
            self.root.destroy()
            self.root = None
        self.canvas = None
        self.photo_image = None

    def is_running(self) -> bool:
        return self.root is not None


class FeedbackWindow:
    """OpenCV preview window with progress text and key-press trigger.

    Enter confirms a capture, ``q`` or Escape cancels the session.
    """

    def __init__(
        self,
        name: str = "Calibration",
        poll_interval_ms: int = 15,
        on_poll: Optional[Callable[[], None]] = None,
    ):
        """Open preview window.

        Args:
            name: Window title
            poll_interval_ms: Key wait per poll
            on_poll: Called on every poll, e.g. to keep the projector window responsive
        """
        self.name = name
        self.poll_interval_ms = poll_interval_ms
        self.on_poll = on_poll
        self.text = ""
        try:
            cv2.namedWindow(self.name, cv2.WINDOW_NORMAL)
        except cv2.error as e:
            raise DeviceError(f"Cannot open preview window: {e}") from e

    def overlay_text(self, text: str) -> None:
        self.text = text

    def show_image(self, image: np.ndarray) -> None:
        if image.ndim == 2:
            canvas = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        else:
            canvas = image.copy()

        font = cv2.FONT_HERSHEY_SIMPLEX
        for i, line in enumerate(self.text.split("\n")):
            position = (20, 40 + i * 36)
            cv2.putText(canvas, line, position, font, 1, (0, 0, 0), 4)
            cv2.putText(canvas, line, position, font, 1, (255, 255, 255), 2)

        cv2.imshow(self.name, canvas)

    def poll_trigger(self) -> TriggerEvent:
        if self.on_poll is not None:
            self.on_poll()
        key = cv2.waitKey(self.poll_interval_ms)
        if key < 0:
            return TriggerEvent.IDLE
        key &= 0xFF
        if key in CONFIRM_KEYS:
            return TriggerEvent.CONFIRM
        if key in CANCEL_KEYS:
            return TriggerEvent.CANCEL
        return TriggerEvent.IDLE

    def close(self) -> None:
        cv2.destroyWindow(self.name)
