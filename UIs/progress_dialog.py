import tkinter as tk
from tkinter import ttk
import threading
import traceback


class ProgressDialog:
    """
    Modal progress dialog that runs a task in a background thread.

    Usage:
        ProgressDialog(root, "Loading...", "Loading files...", "File").run(
            lambda progress_cb: load(..., progress_callback=progress_cb),
            on_success=lambda result: ...,
            on_error=lambda err: ...,
        )

    Tasks without progress reporting (model fitting) show an indeterminate bar
    when `indeterminate=True`.
    """

    def __init__(self, root, title, body_label, status_prefix="", indeterminate=False):
        self._root = root
        self._status_prefix = status_prefix

        self._dialog = tk.Toplevel(root)
        self._dialog.title(title)
        self._dialog.geometry("400x150")
        self._dialog.resizable(False, False)
        self._dialog.transient(root)
        self._dialog.grab_set()

        tk.Label(self._dialog, text=body_label, font=("Arial", 12, "bold")).pack(pady=10)

        self._status_label = tk.Label(self._dialog, text=f"{status_prefix}: " if status_prefix else "", fg="blue")
        self._status_label.pack(pady=5)

        self._progress_label = tk.Label(self._dialog, text="", fg="gray")
        self._progress_label.pack(pady=5)

        mode = 'indeterminate' if indeterminate else 'determinate'
        self._progress_bar = ttk.Progressbar(self._dialog, mode=mode, length=300)
        self._progress_bar.pack(pady=10, padx=20)
        if indeterminate:
            self._progress_bar.start(15)

    def run(self, fn, on_success, on_error):
        """
        Execute fn in a background thread, then call on_success or on_error on the main thread.

        Args:
            fn: callable(progress_cb) -> result, where progress_cb(current, total, label).
            on_success: callable(result).
            on_error: callable(error_str).
        """
        def background():
            try:
                def progress_cb(current, total, label):
                    self._root.after(0, lambda: self._update_ui(current, total, label))

                result = fn(progress_cb)
                self._root.after(0, lambda: self._finish(on_success, result, None, on_error))
            except Exception as e:
                err = str(e)
                print(f"\n[ERROR] {err}")
                traceback.print_exc()
                self._root.after(0, lambda: self._finish(on_success, None, err, on_error))

        threading.Thread(target=background, daemon=True).start()

    def _update_ui(self, current, total, label):
        if self._dialog.winfo_exists():
            self._status_label.config(text=f"{self._status_prefix}: {label}")
            self._progress_label.config(text=f"Progress: {current}/{total}")
            self._progress_bar['value'] = (current / total) * 100

    def _finish(self, on_success, result, error, on_error):
        if self._dialog.winfo_exists():
            self._progress_bar.stop()
            self._dialog.destroy()
        if error is not None:
            on_error(error)
        else:
            on_success(result)
