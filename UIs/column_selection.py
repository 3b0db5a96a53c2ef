import tkinter as tk
from tkinter import ttk, messagebox, scrolledtext

from logics.file_handler import join_attributes, check_panel_continuity


class ColumnSelection:
    """Second screen – join keys (shapes + table) and optional panel ID / time columns."""

    def __init__(self, root, model, *, on_finish):
        self.root = root
        self.model = model
        self.on_finish = on_finish

        self.geo_df = model.dfs_by_type.get('GEO')
        self.table_df = model.dfs_by_type.get('TABLE')

        self._build_ui()

    def _build_ui(self):
        tk.Label(self.root, text="Choose key columns", font=("Arial", 12)).pack(pady=10)

        tree = ttk.Treeview(self.root, columns=("Column", "From File"), show="headings", height=12)
        tree.heading("Column", text="Column")
        tree.heading("From File", text="Source")
        tree.column("Column", width=350)
        tree.column("From File", width=150)
        for col in self.model.available_vars:
            tree.insert("", "end", values=(col, self.model.column_sources.get(col, 'Unknown')))
        tree.pack(pady=10, padx=10, fill='both', expand=True)

        frame = ttk.Frame(self.root)
        frame.pack(pady=10)

        self.combo_geo_key = self.combo_table_key = None
        if self.geo_df is not None and self.table_df is not None:
            join_frame = ttk.LabelFrame(frame, text="Join table onto shapes", padding=8)
            join_frame.pack(fill='x', pady=5)
            tk.Label(join_frame, text="Shapes key:").pack(side='left')
            self.combo_geo_key = ttk.Combobox(join_frame, values=self._columns(self.geo_df), width=30)
            self.combo_geo_key.pack(side='left', padx=5)
            tk.Label(join_frame, text="Table key:").pack(side='left')
            self.combo_table_key = ttk.Combobox(join_frame, values=self._columns(self.table_df), width=30)
            self.combo_table_key.pack(side='left', padx=5)
            self._guess_join_keys()

        panel_source = self.table_df if self.table_df is not None else self.geo_df
        panel_frame = ttk.LabelFrame(frame, text="Panel structure (optional)", padding=8)
        panel_frame.pack(fill='x', pady=5)
        tk.Label(panel_frame, text="Entity ID:").pack(side='left')
        self.combo_id = ttk.Combobox(panel_frame, values=[''] + self._columns(panel_source), width=30)
        self.combo_id.pack(side='left', padx=5)
        tk.Label(panel_frame, text="Time (Year):").pack(side='left')
        self.combo_time = ttk.Combobox(panel_frame, values=[''] + self._columns(panel_source), width=30)
        self.combo_time.pack(side='left', padx=5)
        ttk.Button(panel_frame, text="Check continuity", command=self._check_continuity).pack(side='left', padx=10)

        ttk.Button(frame, text="Confirm >>", command=self._confirm).pack(pady=15)

    @staticmethod
    def _columns(df):
        return [str(c) for c in df.columns if c != 'geometry']

    def _guess_join_keys(self):
        """Pre-select an ISO code column when both sides share one."""
        shared = set(self._columns(self.geo_df)) & set(self._columns(self.table_df))
        for candidate in ('iso_a3', 'ISO_A3', 'iso3', 'name', 'country'):
            if candidate in shared:
                self.combo_geo_key.set(candidate)
                self.combo_table_key.set(candidate)
                return

    def _confirm(self):
        id_col = self.combo_id.get() or None
        time_col = self.combo_time.get() or None
        if bool(id_col) != bool(time_col):
            messagebox.showwarning("Warning", "Select both entity ID and time, or neither.")
            return
        if id_col and id_col == time_col:
            messagebox.showwarning("Warning", "Entity ID and time must be different columns.")
            return

        try:
            if self.combo_geo_key is not None:
                geo_key, table_key = self.combo_geo_key.get(), self.combo_table_key.get()
                if not geo_key or not table_key:
                    messagebox.showwarning("Warning", "Select a join key on both sides.")
                    return
                self.model.df = join_attributes(self.geo_df, self.table_df, geo_key, table_key)
                self.model.geo_key, self.model.table_key = geo_key, table_key
            elif self.geo_df is not None:
                self.model.df = self.geo_df
            else:
                self.model.df = self.table_df
        except Exception as e:
            messagebox.showerror("Join error", str(e))
            return

        self.model.geo_df = self.geo_df
        self.model.table_df = self.table_df
        self.model.id_col, self.model.time_col = id_col, time_col
        self.model.refresh_available_vars()

        messagebox.showinfo(
            "Columns set",
            f"Rows: {len(self.model.df)}\n"
            f"Join: {self.model.geo_key or '-'} = {self.model.table_key or '-'}\n"
            f"Panel: {id_col or '-'} / {time_col or '-'}",
        )
        self.on_finish()

    def _check_continuity(self):
        id_col, time_col = self.combo_id.get(), self.combo_time.get()
        if not id_col or not time_col:
            messagebox.showwarning("Warning", "Select entity ID and time column first.")
            return

        source = self.table_df if self.table_df is not None else self.geo_df
        try:
            results = check_panel_continuity(source, id_col, time_col)
        except Exception as e:
            messagebox.showerror("Panel check error", str(e))
            return
        self._show_continuity_report(results)

    def _show_continuity_report(self, results):
        dialog = tk.Toplevel(self.root)
        dialog.title("Panel continuity")
        dialog.geometry("600x500")

        total = len(results)
        continuous = sum(1 for r in results.values() if r['continuous'])
        gaps = total - continuous
        tk.Label(
            dialog,
            text=f"Entities: {total} | Continuous: {continuous} | With gaps: {gaps}",
            font=("Arial", 11, "bold"),
            fg="green" if gaps == 0 else "red",
        ).pack(pady=10)

        text_widget = scrolledtext.ScrolledText(dialog, height=20, width=70, wrap=tk.WORD)
        text_widget.pack(fill='both', expand=True, padx=10, pady=10)
        text_widget.tag_config("continuous", foreground="green")
        text_widget.tag_config("gap", foreground="red")

        for entity_id in sorted(results, key=str):
            result = results[entity_id]
            tag = "continuous" if result['continuous'] else "gap"
            years = result['years']
            years_str = "-".join(str(y) for y in years[:5])
            if len(years) > 5:
                years_str += f"... ({len(years)} periods)"
            text_widget.insert(tk.END, f"{'✓' if result['continuous'] else '✗'} {entity_id}\n", tag)
            text_widget.insert(tk.END, f"   Periods: {years_str}\n")
            text_widget.insert(tk.END, f"   Gaps: {', '.join(result['gaps']) or 'None'}\n\n")

        text_widget.config(state='disabled')
        ttk.Button(dialog, text="Close", command=dialog.destroy).pack(pady=10)
