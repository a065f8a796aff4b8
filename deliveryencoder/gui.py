"""Tk window for the encoder and the command that opens it."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Protocol, Sequence

from .app import DialogState, EncoderState
from .models import Resolution
from .utils import open_folder

LIGHT_GREEN = "#90ee90"
DARK_GREEN = "#006400"
LIGHT_RED = "#ff8080"
LIGHT_BLUE = "#add8e6"
LIGHT_YELLOW = "#ffffe0"
ENCODING_GREEN = "#00b464"
GRAY = "#a0a0a0"

_WINDOW_BG = "#141414"
_PANEL_BG = "#191919"
_WIDGET_BG = "#232323"
_TEXT_FG = "#e6e6e6"
_BROWSE_BG = "#1e5a64"
_START_BG = "#008c46"
_PAUSE_BG = "#c89632"
_CANCEL_BG = "#b45050"
_CANCEL_DELETE_BG = "#962828"
_OPEN_BG = "#3278b4"

_BODY_FONT = ("TkDefaultFont", 12)
_HEADING_FONT = ("TkDefaultFont", 15, "bold")

_ICON_SIZE = (256, 256)
_REFRESH_MS = 100
_BAR_WIDTH = 500
_BAR_HEIGHT = 22

_BY_LABEL = {resolution.label(): resolution for resolution in Resolution}


class _StatusView(Protocol):
    encoding: bool
    progress: float
    sufficient_storage: bool


def status_color(state: _StatusView) -> str:
    """Colour of the status line for the given encoder state."""
    if state.encoding:
        return LIGHT_GREEN
    if state.progress >= 100.0:
        return DARK_GREEN
    if not state.sufficient_storage:
        return LIGHT_RED
    return LIGHT_BLUE


def progress_color(state: _StatusView) -> str:
    """Fill colour of the progress bar for the given encoder state."""
    if state.encoding:
        return ENCODING_GREEN
    if state.progress >= 100.0:
        return DARK_GREEN
    return LIGHT_BLUE


def _progress_text(progress: float) -> str:
    return f"{progress:.1f}%"


def _rgba_to_ppm(rgba: bytes, width: int, height: int) -> bytes:
    """Binary PPM image from raw RGBA pixels, dropping the alpha channel."""
    if len(rgba) != width * height * 4:
        raise ValueError(
            f"expected {width * height * 4} bytes of RGBA data, got {len(rgba)}"
        )
    rgb = bytearray(width * height * 3)
    for channel in range(3):
        rgb[channel::3] = rgba[channel::4]
    return f"P6 {width} {height} 255\n".encode("ascii") + bytes(rgb)


class EncoderWindow:
    """Main window: settings, status, progress and controls."""

    def __init__(self, root, state: EncoderState) -> None:
        import tkinter as tk
        from tkinter import ttk

        self.root = root
        self.state = state
        self._after_id: str | None = None

        root.title("Delivery Encoder")
        root.geometry("565x500")
        root.configure(bg=_WINDOW_BG)

        label_opts = {"bg": _PANEL_BG, "fg": _TEXT_FG, "font": _BODY_FONT}
        button_opts = {"fg": _TEXT_FG, "font": _BODY_FONT, "relief": "flat", "padx": 8}

        body = tk.Frame(root, bg=_PANEL_BG, padx=30, pady=30)
        body.pack(fill="both", expand=True)

        tk.Label(
            body, text="Encoder Settings", bg=_PANEL_BG, fg=_TEXT_FG, font=_HEADING_FONT
        ).pack(anchor="w")

        resolution_row = tk.Frame(body, bg=_PANEL_BG)
        resolution_row.pack(fill="x", pady=(10, 0))
        tk.Label(resolution_row, text="Resolution:", **label_opts).pack(side="left")
        self._resolution_var = tk.StringVar(value=state.resolution.label())
        self._resolution_box = ttk.Combobox(
            resolution_row,
            textvariable=self._resolution_var,
            values=list(_BY_LABEL),
            state="readonly",
            width=18,
        )
        self._resolution_box.pack(side="left", padx=(8, 0))
        self._resolution_box.bind("<<ComboboxSelected>>", self._on_resolution_selected)

        output_row = tk.Frame(body, bg=_PANEL_BG)
        output_row.pack(fill="x", pady=(10, 0))
        tk.Label(output_row, text="Output Directory:", **label_opts).pack(side="left")
        self._browse_button = tk.Button(
            output_row, text="📂 Browse...", bg=_BROWSE_BG, command=self._on_browse, **button_opts
        )
        self._browse_button.pack(side="left", padx=8)
        self._output_label = tk.Label(output_row, text="Not selected", **label_opts)
        self._output_label.pack(side="left")

        ttk.Separator(body, orient="horizontal").pack(fill="x", pady=20)

        tk.Label(
            body, text="Current Status:", bg=_PANEL_BG, fg=LIGHT_BLUE, font=_HEADING_FONT
        ).pack(anchor="w")
        self._frame_label = tk.Label(
            body, text=state.current_frame, anchor="w", justify="left", **label_opts
        )
        self._frame_label.pack(fill="x", pady=(5, 10))

        self._bar = tk.Canvas(
            body, width=_BAR_WIDTH, height=_BAR_HEIGHT, bg=_WIDGET_BG, highlightthickness=0
        )
        self._bar.pack(fill="x")

        self._storage_label = tk.Label(
            body, text="", bg=_PANEL_BG, fg=LIGHT_RED, font=_BODY_FONT, anchor="w"
        )
        self._storage_label.pack(fill="x", pady=(10, 0))

        buttons = tk.Frame(body, bg=_PANEL_BG)
        buttons.pack(fill="x", pady=(20, 0))
        self._pause_button = tk.Button(
            buttons, text="⏸ Pause", bg=_PAUSE_BG, command=self.state.pause_encoding, **button_opts
        )
        self._cancel_button = tk.Button(
            buttons,
            text="⏹ Cancel",
            bg=_CANCEL_BG,
            command=lambda: self._confirm_cancel(DialogState.CONFIRM_CANCEL),
            **button_opts,
        )
        self._cancel_delete_button = tk.Button(
            buttons,
            text="⏹ Cancel and Delete",
            bg=_CANCEL_DELETE_BG,
            command=lambda: self._confirm_cancel(DialogState.CONFIRM_CANCEL_DELETE),
            **button_opts,
        )
        self._start_button = tk.Button(
            buttons, text="▶ Start Encoding", command=self._on_start, **button_opts
        )
        self._open_button = tk.Button(
            buttons, text="📂 Open Output Folder", command=self._on_open, **button_opts
        )

        if state.instructions:
            ttk.Separator(body, orient="horizontal").pack(fill="x", pady=(20, 10))
            tk.Label(
                body, text=" ", bg=_PANEL_BG, fg=LIGHT_YELLOW, font=_HEADING_FONT
            ).pack(anchor="w")
            tk.Label(
                body,
                text=state.instructions,
                anchor="w",
                justify="left",
                wraplength=_BAR_WIDTH,
                **label_opts,
            ).pack(fill="x", pady=(5, 0))

        self.refresh()

    def refresh(self) -> None:
        """Apply pending progress, redraw every widget and schedule the next pass."""
        if self._after_id is not None:
            self.root.after_cancel(self._after_id)
            self._after_id = None
        self.state.poll()
        self._redraw()
        self._after_id = self.root.after(_REFRESH_MS, self.refresh)

    def _redraw(self) -> None:
        state = self.state

        self._resolution_var.set(state.resolution.label())
        self._resolution_box.configure(state="disabled" if state.encoding else "readonly")
        self._browse_button.configure(state="disabled" if state.encoding else "normal")
        self._output_label.configure(
            text=str(state.output_dir) if state.output_dir is not None else "Not selected"
        )

        self._frame_label.configure(text=state.current_frame, fg=status_color(state))
        self._draw_bar()

        show_error = not state.encoding and state.storage_error
        self._storage_label.configure(text=state.storage_error if show_error else "")

        for button in (
            self._pause_button,
            self._cancel_button,
            self._cancel_delete_button,
            self._start_button,
            self._open_button,
        ):
            button.pack_forget()

        if state.encoding:
            for button in (self._pause_button, self._cancel_button, self._cancel_delete_button):
                button.pack(side="left", padx=(0, 8))
        else:
            start_enabled = state.sufficient_storage
            self._start_button.configure(
                state="normal" if start_enabled else "disabled",
                bg=_START_BG if start_enabled else GRAY,
            )
            self._start_button.pack(side="left", padx=(0, 8))

        open_enabled = state.output_dir is not None
        self._open_button.configure(
            state="normal" if open_enabled else "disabled",
            bg=_OPEN_BG if open_enabled else GRAY,
        )
        self._open_button.pack(side="left")

    def _draw_bar(self) -> None:
        progress = max(0.0, min(self.state.progress, 100.0))
        width = self._bar.winfo_width()
        if width <= 1:
            width = _BAR_WIDTH
        self._bar.delete("all")
        self._bar.create_rectangle(
            0, 0, width * progress / 100.0, _BAR_HEIGHT,
            fill=progress_color(self.state), width=0,
        )
        self._bar.create_text(
            width / 2, _BAR_HEIGHT / 2,
            text=_progress_text(self.state.progress), fill=_TEXT_FG, font=_BODY_FONT,
        )

    def _on_resolution_selected(self, _event=None) -> None:
        resolution = _BY_LABEL.get(self._resolution_var.get())
        if resolution is not None and not self.state.encoding:
            self.state.set_resolution(resolution)
        self._redraw()

    def _on_browse(self) -> None:
        from tkinter import filedialog

        path = filedialog.askdirectory(parent=self.root)
        if path:
            self.state.set_output_dir(path)
        self._redraw()

    def _on_start(self) -> None:
        self.state.start_encoding()
        self._redraw()

    def _on_open(self) -> None:
        if self.state.output_dir is not None:
            open_folder(self.state.output_dir)

    def _confirm_cancel(self, dialog: DialogState) -> None:
        from tkinter import messagebox

        self.state.dialog_state = dialog
        confirmed = messagebox.askyesno(
            "Cancel Encoding?", "Are you sure you want to cancel?", parent=self.root
        )
        if confirmed:
            self.state.cancel_encoding(dialog.delete_frames)
        else:
            self.state.dialog_state = DialogState.NONE
        self._redraw()


def _load_icon(root, assets_dir: Path):
    import tkinter as tk

    try:
        rgba = (assets_dir / "krutart.rgba").read_bytes()
        ppm = _rgba_to_ppm(rgba, *_ICON_SIZE)
        icon = tk.PhotoImage(master=root, data=ppm, format="PPM")
        root.iconphoto(True, icon)
    except (OSError, ValueError, tk.TclError):
        return None
    return icon


def main(argv: Sequence[str] | None = None) -> int:
    """Open the encoder window."""
    parser = argparse.ArgumentParser(
        prog="deliveryencoder", description="Render overlaid PNG frame sequences with ffmpeg."
    )
    parser.add_argument(
        "--assets", default="assets", help="directory holding the video, overlays and instructions"
    )
    args = parser.parse_args(argv)

    import tkinter as tk

    try:
        root = tk.Tk()
    except tk.TclError as exc:
        print(f"Application error: {exc}", file=sys.stderr)
        return 1

    assets_dir = Path(args.assets)
    icon = _load_icon(root, assets_dir)
    state = EncoderState(assets_dir)
    window = EncoderWindow(root, state)
    root.mainloop()
    del window, icon
    return 0