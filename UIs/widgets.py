import tkinter as tk
from tkinter import ttk
from difflib import SequenceMatcher


class FuzzyListbox(ttk.LabelFrame):
    """
    A labeled frame with a fuzzy search bar over a Listbox of column names.

    Used wherever the user picks columns: the map column, model outcome and
    predictors, group-by columns.

    Args:
        parent: Parent widget.
        title: LabelFrame title text.
        items: Initial list of column names.
        selectmode: Tkinter selectmode ('single' or 'multiple').
        height: Listbox height in rows.
        debounce_ms: Milliseconds to wait after a keystroke before filtering.
    """

    def __init__(self, parent, *, title, items, selectmode='single', height=10, debounce_ms=250):
        super().__init__(parent, text=title, padding=5)
        self._all_items = list(items)
        self._debounce_ms = debounce_ms
        self._timer = None
        self._extra_filter = None

        search_frame = ttk.Frame(self)
        search_frame.pack(fill='x', pady=(0, 4))
        tk.Label(search_frame, text="Search:").pack(side='left')
        self._search_var = tk.StringVar()
        entry = ttk.Entry(search_frame, textvariable=self._search_var)
        entry.pack(side='left', fill='x', expand=True, padx=(4, 0))
        entry.bind('<KeyRelease>', self._on_key)

        lb_frame = ttk.Frame(self)
        lb_frame.pack(fill='both', expand=True)
        self._listbox = tk.Listbox(lb_frame, height=height, selectmode=selectmode, exportselection=False)
        scrollbar = ttk.Scrollbar(lb_frame, command=self._listbox.yview)
        self._listbox.configure(yscrollcommand=scrollbar.set)
        scrollbar.pack(side='right', fill='y')
        self._listbox.pack(fill='both', expand=True)

        if selectmode == 'multiple':
            btns = ttk.Frame(self)
            btns.pack(fill='x', pady=(4, 0))
            ttk.Button(btns, text="All", width=6, command=self.select_all).pack(side='left')
            ttk.Button(btns, text="None", width=6, command=self.clear_selection).pack(side='left', padx=4)

        self._refresh()

    # ── Public API ────────────────────────────────────────────

    def set_items(self, items):
        self._all_items = list(items)
        self._refresh()

    def set_extra_filter(self, fn):
        """Additional filter callable(item) -> bool applied on top of the search. None removes it."""
        self._extra_filter = fn
        self._refresh()

    def get_selection(self) -> list:
        return [self._listbox.get(i) for i in self._listbox.curselection()]

    def get_first(self):
        sel = self.get_selection()
        return sel[0] if sel else None

    def set_selection(self, names):
        """Pre-select items by name and scroll to the first one."""
        self._listbox.selection_clear(0, tk.END)
        names = set(names)
        first = None
        for i in range(self._listbox.size()):
            if self._listbox.get(i) in names:
                self._listbox.selection_set(i)
                if first is None:
                    first = i
        if first is not None:
            self._listbox.see(first)

    def select_all(self):
        self._listbox.selection_set(0, tk.END)
        self._listbox.event_generate('<<ListboxSelect>>')

    def clear_selection(self):
        self._listbox.selection_clear(0, tk.END)
        self._listbox.event_generate('<<ListboxSelect>>')

    def bind_select(self, callback):
        self._listbox.bind('<<ListboxSelect>>', callback)

    # ── Internals ─────────────────────────────────────────────

    @staticmethod
    def _fuzzy_match(query, text):
        q, t = query.lower(), text.lower()
        return q in t or SequenceMatcher(None, q, t).ratio() > 0.6

    def _on_key(self, _event=None):
        if self._timer is not None:
            self.after_cancel(self._timer)
        self._timer = self.after(self._debounce_ms, self._refresh)

    def _refresh(self):
        query = self._search_var.get().strip()
        selected = self.get_selection()
        self._listbox.delete(0, tk.END)
        for item in self._all_items:
            if query and not self._fuzzy_match(query, item):
                continue
            if self._extra_filter and not self._extra_filter(item):
                continue
            self._listbox.insert(tk.END, item)
        if selected:
            self.set_selection(selected)
