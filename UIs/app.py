from tkinter import messagebox, filedialog

import geopandas as gpd

from logics.data_model import DataModel
from logics.file_handler import load_individual_files, export_to_file
from logics.computation import compute_variables

from UIs.data_input_wizard import DataInputWizard
from UIs.column_selection import ColumnSelection
from UIs.variable_generator import VariableGenerator
from UIs.choropleth_dialog import ChoroplethDialog
from UIs.marginal_effects_dialog import MarginalEffectsDialog
from UIs.progress_dialog import ProgressDialog


class StatNotesApp:
    """Main application controller that manages navigation between views."""

    def __init__(self, root):
        self.root = root
        self.root.title("Statistics Notes Workbench - choropleths & marginal effects")
        self.root.geometry("1050x900")

        self.model = DataModel()

        self.show_data_input_wizard()

    # ── Navigation ──────────────────────────────────────────

    def show_data_input_wizard(self):
        self._clear_window()
        DataInputWizard(self.root, self.model, on_next=self._on_files_selected)

    def _on_files_selected(self):
        """Load the selected files in a background thread with a progress dialog."""
        def on_success(result):
            dfs_by_type, col_sources, avail_vars = result
            self.model.dfs_by_type = dfs_by_type
            self.model.column_sources = col_sources
            self.model.available_vars = avail_vars
            messagebox.showinfo("Loaded", f"Read {len(dfs_by_type)} file(s). Columns: {len(avail_vars)}")
            self.show_column_selection()

        def on_error(err):
            messagebox.showerror("File read error", err)

        ProgressDialog(self.root, "Loading files...", "Loading files...", "File").run(
            lambda cb: load_individual_files(self.model.file_paths, progress_callback=cb),
            on_success=on_success,
            on_error=on_error,
        )

    def show_column_selection(self):
        self._clear_window()
        ColumnSelection(self.root, self.model, on_finish=self.show_variable_generator)

    def show_variable_generator(self):
        self._clear_window()
        VariableGenerator(
            self.root,
            self.model,
            on_compute=self._on_compute,
            on_export=self._on_export,
            on_map=self._on_map,
            on_effects=self._on_effects,
        )

    # ── Logic callbacks ─────────────────────────────────────

    def _on_compute(self):
        if self.model.df is None:
            messagebox.showerror("Error", "No data loaded.")
            return
        if not self.model.formulas:
            messagebox.showwarning("Warning", "Add at least one variable first.")
            return

        def on_success(calculated_df):
            self.model.calculated_df = calculated_df
            self.model.refresh_available_vars()
            messagebox.showinfo("Done", f"Computed {len(self.model.formulas)} variable(s).")

        def on_error(err):
            messagebox.showerror("Computation error", f"{err}\n\nCheck the expressions and column names.")

        ProgressDialog(self.root, "Computing...", "Computing variables...", "Variable").run(
            lambda cb: compute_variables(
                self.model.df,
                self.model.formulas,
                key_cols=self.model.key_columns(),
                progress_callback=cb,
            ),
            on_success=on_success,
            on_error=on_error,
        )

    def _on_export(self):
        if self.model.calculated_df is None:
            messagebox.showerror("Error", "Nothing computed yet. Press Compute first.")
            return

        path = filedialog.asksaveasfilename(
            defaultextension=".xlsx",
            filetypes=[("Excel", "*.xlsx"), ("CSV", "*.csv")],
        )
        if path:
            summaries = {}
            if self.model.effects_df is not None:
                summaries['Marginal effects'] = self.model.effects_df
            try:
                export_to_file(self.model.working_frame(), path, summaries=summaries)
                messagebox.showinfo("Exported", f"Saved: {path}")
            except Exception as e:
                messagebox.showerror("Export error", str(e))

    def _on_map(self):
        frame = self.model.working_frame()
        if not isinstance(frame, gpd.GeoDataFrame):
            messagebox.showerror("Error", "A shapes file is needed to draw a map.")
            return
        ChoroplethDialog(self.root, self.model, frame)

    def _on_effects(self):
        frame = self.model.working_frame()
        if frame is None:
            messagebox.showerror("Error", "No data loaded.")
            return
        MarginalEffectsDialog(self.root, self.model, frame)

    # ── Helpers ──────────────────────────────────────────────

    def _clear_window(self):
        for widget in self.root.winfo_children():
            widget.destroy()
