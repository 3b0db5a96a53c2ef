import tkinter as tk
from tkinter import ttk, messagebox
from UIs.widgets import FuzzyListbox


class MeanVariableDialog:
    """
    Dialog for a group-mean variable, e.g. mean GDP per capita by continent.

    Args:
        root: Parent Tk window.
        available_vars: Column names to choose from.
        on_apply: callable(name, mean_var, mean_groups) called on confirm.
        initial_values: formula dict to pre-fill when editing.
    """

    def __init__(self, root, available_vars, *, on_apply, initial_values=None):
        self._root = root
        self._available_vars = sorted(available_vars)
        self._on_apply = on_apply
        self._initial_values = initial_values or {}
        self._build()

    def _build(self):
        win = tk.Toplevel(self._root)
        win.title("Add Group Mean")
        win.geometry("680x520")
        win.transient(self._root)
        win.grab_set()

        name_frame = ttk.LabelFrame(win, text="Variable name", padding=8)
        name_frame.pack(fill='x', padx=15, pady=(12, 5))
        self._name_var = tk.StringVar()
        ttk.Entry(name_frame, textvariable=self._name_var, width=50).pack(side='left', padx=5)
        tk.Label(name_frame, text="(auto-filled, editable)", fg="gray").pack(side='left')

        panels = ttk.Frame(win)
        panels.pack(fill='both', expand=True, padx=15, pady=5)
        self._fuzzy_var = FuzzyListbox(panels, title="Variable to average", items=self._available_vars)
        self._fuzzy_var.pack(side='left', fill='both', expand=True, padx=(0, 8))
        self._fuzzy_groups = FuzzyListbox(panels, title="Group by (e.g. continent)",
                                          items=self._available_vars, selectmode='multiple')
        self._fuzzy_groups.pack(side='right', fill='both', expand=True, padx=(8, 0))

        self._preview_label = tk.Label(win, text="(select a variable and groups)", fg="gray",
                                       anchor='w', font=("Courier", 9))
        self._preview_label.pack(fill='x', padx=15, pady=5)

        btn_frame = ttk.Frame(win)
        btn_frame.pack(pady=10)
        ttk.Button(btn_frame, text="Cancel", command=win.destroy).pack(side='left', padx=20)
        ttk.Button(btn_frame, text="Add Variable", command=lambda: self._confirm(win)).pack(side='left', padx=20)

        self._fuzzy_var.bind_select(lambda _: self._update_preview())
        self._fuzzy_groups.bind_select(lambda _: self._update_preview())

        if self._initial_values:
            self._name_var.set(self._initial_values.get('name', ''))
            self._fuzzy_var.set_selection([self._initial_values.get('mean_var', '')])
            self._fuzzy_groups.set_selection(self._initial_values.get('mean_groups', []))
            self._update_preview()

    def _update_preview(self):
        mean_var = self._fuzzy_var.get_first()
        groups = self._fuzzy_groups.get_selection()
        if not mean_var:
            self._preview_label.config(text="(select a variable)", fg="gray")
            return

        self._preview_label.config(text=f"mean({mean_var}) by {', '.join(groups) or '?'}", fg="black")
        current = self._name_var.get()
        if not current or current.endswith("_mean"):
            self._name_var.set(f"{mean_var}_mean")

    def _confirm(self, win):
        name = self._name_var.get().strip()
        mean_var = self._fuzzy_var.get_first()
        groups = self._fuzzy_groups.get_selection()

        if not name:
            messagebox.showwarning("Missing name", "Please enter a variable name.", parent=win)
            return
        if not mean_var:
            messagebox.showwarning("Missing variable", "Please select a variable to average.", parent=win)
            return
        if not groups:
            messagebox.showwarning("Missing group", "Please select at least one group column.", parent=win)
            return

        self._on_apply(name, mean_var, groups)
        win.destroy()
