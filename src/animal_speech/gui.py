from __future__ import annotations

import argparse
import logging
from pathlib import Path

try:
    import tkinter as tk
    from tkinter import messagebox, ttk
except Exception:  # pragma: no cover - depends on local Python build
    tk = None
    messagebox = None
    ttk = None

from animal_speech.audio import request_microphone_permission
from animal_speech.core.models import LoopState
from animal_speech.display import AnimalPresenter, ImageCatalog
from animal_speech.errors import AnimalSpeechError, ConstraintCompilationFailure
from animal_speech.recognition import RecognitionLoop, SpeechConfig
from animal_speech.settings import add_common_arguments, configure_logging, speech_config_from_args
from animal_speech.ui.image_loader import encode_png, png_to_photo_data
from animal_speech.ui.surface import DisplaySurface

logger = logging.getLogger(__name__)

POLL_MS = 100
IMAGE_SIZE = (560, 420)

STATUS_TEXT = {
    LoopState.UNINITIALIZED: "Starting",
    LoopState.READY: "Stopped",
    LoopState.LISTENING: "Listening",
    LoopState.IDLE: "Microphone unavailable",
    LoopState.DISPOSED: "Closed",
}


class AnimalApp(DisplaySurface):
    def __init__(
        self,
        root: tk.Tk,
        config: SpeechConfig,
        catalog: ImageCatalog,
        language: str | None = None,
    ) -> None:
        self.root = root
        self.language = language
        self.catalog = catalog
        self.presenter = AnimalPresenter(self, catalog=catalog)
        self.loop = RecognitionLoop(self.presenter, config=config)
        self.fatal_error: Exception | None = None

        self.name_var = tk.StringVar(value="Say an animal name")
        self.status_var = tk.StringVar(value=STATUS_TEXT[LoopState.UNINITIALIZED])
        self._photo: tk.PhotoImage | None = None
        self._permission_granted = False
        self._started = False

        self._build_layout()
        self.root.bind("<FocusIn>", self._on_focus_in)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self.root.after(0, self._startup)
        self.root.after(POLL_MS, self._drain_updates)

    def _build_layout(self) -> None:
        self.root.title("Animal Names")
        self.root.geometry("640x600")

        self.image_label = ttk.Label(self.root, anchor=tk.CENTER)
        self.image_label.pack(fill=tk.BOTH, expand=True, padx=12, pady=(12, 0))

        ttk.Label(
            self.root,
            textvariable=self.name_var,
            anchor=tk.CENTER,
            font=("TkDefaultFont", 28, "bold"),
        ).pack(fill=tk.X, padx=12, pady=8)

        bottom = ttk.Frame(self.root, padding=(12, 0, 12, 12))
        bottom.pack(fill=tk.X)
        ttk.Label(bottom, textvariable=self.status_var, foreground="#0b5cad").pack(side=tk.LEFT)
        self.listen_btn = ttk.Button(bottom, text="Stop", command=self._toggle_listening, state=tk.DISABLED)
        self.listen_btn.pack(side=tk.RIGHT)
        ttk.Button(bottom, text="Reload", command=self._reload).pack(side=tk.RIGHT, padx=(0, 8))

    # DisplaySurface

    def set_image_source(self, source: Path) -> None:
        png = encode_png(source, IMAGE_SIZE)
        if png is None:
            self._photo = None
            self.image_label.configure(image="", text=f"(no picture: {source.name})")
            return
        self._photo = tk.PhotoImage(data=png_to_photo_data(png))
        self.image_label.configure(image=self._photo, text="")

    def set_label_text(self, text: str) -> None:
        self.name_var.set(text)

    # Lifecycle

    def _startup(self) -> None:
        self._started = True
        if not self._check_permission(notify_user=True):
            return
        self._initialize_and_start()

    def _check_permission(self, notify_user: bool) -> bool:
        # Dialogs steal focus, so only explicit actions may show one.
        notify = (lambda message: messagebox.showinfo("Microphone", message)) if notify_user else None
        try:
            self._permission_granted = request_microphone_permission(
                notify=notify,
                device=self.loop.config.device,
            )
        except AnimalSpeechError as exc:
            self._fail(exc)
            return False
        if not self._permission_granted:
            self.status_var.set("Microphone access is off")
        return self._permission_granted

    def _initialize_and_start(self) -> None:
        try:
            self.loop.initialize(self.language)
            self.loop.start()
        except ConstraintCompilationFailure as exc:
            self._fail(exc)
            return
        except AnimalSpeechError as exc:
            messagebox.showerror("Start failed", str(exc))
            self._refresh_status()
            return
        self._refresh_status()

    def _reload(self) -> None:
        if self._check_permission(notify_user=True):
            self._initialize_and_start()

    def _toggle_listening(self) -> None:
        if self.loop.state == LoopState.LISTENING:
            self.loop.stop()
        elif self.loop.recognizer is not None:
            try:
                self.loop.start()
            except (AnimalSpeechError, RuntimeError) as exc:
                messagebox.showerror("Start failed", str(exc))
        self._refresh_status()

    def _on_focus_in(self, event) -> None:
        if not self._started or event.widget is not self.root or self.fatal_error is not None:
            return
        if self.loop.state in (LoopState.LISTENING, LoopState.DISPOSED):
            return
        # Listening was never started or capture failed; privacy settings may have changed meanwhile.
        if self._permission_granted and self.loop.state == LoopState.READY:
            return
        if not self._check_permission(notify_user=False):
            return
        if self.loop.recognizer is None:
            self._initialize_and_start()
        else:
            self._toggle_listening()

    def _drain_updates(self) -> None:
        try:
            self.loop.drain()
            self._refresh_status()
        finally:
            if self.loop.state != LoopState.DISPOSED:
                self.root.after(POLL_MS, self._drain_updates)

    def _refresh_status(self) -> None:
        if not self._permission_granted and self.loop.recognizer is None:
            return
        self.status_var.set(STATUS_TEXT[self.loop.state])
        can_toggle = self.loop.recognizer is not None
        self.listen_btn.config(
            state=tk.NORMAL if can_toggle else tk.DISABLED,
            text="Stop" if self.loop.state == LoopState.LISTENING else "Listen",
        )

    def _fail(self, exc: Exception) -> None:
        logger.error("Fatal: %s", exc)
        self.fatal_error = exc
        messagebox.showerror("Animal Names", str(exc))
        self._on_close()

    def _on_close(self) -> None:
        self.loop.dispose()
        self.root.destroy()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show a picture of the animal you name.")
    return add_common_arguments(parser)


def main() -> int:
    args = build_parser().parse_args()
    configure_logging(args.log_level)
    if tk is None:
        raise RuntimeError(
            "Tkinter is unavailable in this Python runtime. "
            "Use the console runner: animal-speech-console"
        )
    catalog = ImageCatalog(args.image_dir)
    catalog.warn_missing()
    root = tk.Tk()
    app = AnimalApp(
        root=root,
        config=speech_config_from_args(args),
        catalog=catalog,
        language=args.language,
    )
    root.mainloop()
    return 1 if app.fatal_error is not None else 0


if __name__ == "__main__":
    raise SystemExit(main())
