import tkinter as tk
from tkinter import ttk, messagebox, scrolledtext

from logics.computation import GDP_SCALE
from UIs.mean_variable_dialog import MeanVariableDialog


class VariableGenerator:
    """Third screen – derived variables, compute & export, and the map / model dialogs."""

    def __init__(self, root, model, *, on_compute, on_export, on_map, on_effects):
        self.root = root
        self.model = model
        self.on_compute = on_compute
        self.on_export = on_export
        self.on_map = on_map
        self.on_effects = on_effects

        self._build_ui()

    # ── Main layout ──────────────────────────────────────────

    def _build_ui(self):
        tk.Label(self.root, text="Derived variables", font=("Arial", 12)).pack(pady=10)

        frame_main = ttk.Frame(self.root)
        frame_main.pack(pady=10, padx=20)

        tk.Label(frame_main, text="Variable name:").grid(row=0, column=0, sticky='e', pady=5)
        self.entry_name = ttk.Entry(frame_main, width=35)
        self.entry_name.grid(row=0, column=1, sticky='w')

        tk.Label(frame_main, text="Expression (pandas syntax):").grid(
            row=1, column=0, columnspan=2, pady=5, sticky='w')
        self.entry_expression = scrolledtext.ScrolledText(frame_main, height=4, width=80, wrap=tk.WORD)
        self.entry_expression.grid(row=2, column=0, columnspan=2, pady=5)

        hints = [
            "• Ratio: 1e6 * gdp_md_est / pop_est",
            "• Arithmetic: Revenue - Cost, (a + b) / 2",
            "• Group mean: use 'Add Group Mean...'",
        ]
        for i, hint in enumerate(hints):
            tk.Label(frame_main, text=hint, fg="gray").grid(row=3 + i, column=0, columnspan=2, sticky='w', padx=20)

        action_frame = ttk.Frame(self.root)
        action_frame.pack(pady=10)
        ttk.Button(action_frame, text="Add variable", command=self._add_variable).pack(side='left', padx=10)
        ttk.Button(action_frame, text="Add GDP per capita", command=self._add_gdp_per_capita).pack(side='left', padx=10)
        ttk.Button(action_frame, text="Add Group Mean...", command=self._open_mean_dialog).pack(side='left', padx=10)

        tk.Label(self.root, text="Variables (computed in order):").pack(pady=(10, 5))
        self.formula_list = tk.Listbox(self.root, height=10, width=100)
        self.formula_list.pack(pady=5, padx=10)
        for f in self.model.formulas:
            self.formula_list.insert(tk.END, f"{f['name']} = {f['expression']}")

        list_btn_frame = ttk.Frame(self.root)
        list_btn_frame.pack(pady=5)
        ttk.Button(list_btn_frame, text="Edit", command=self._edit_variable).pack(side='left', padx=10)
        ttk.Button(list_btn_frame, text="Remove", command=self._remove_variable).pack(side='left', padx=10)

        btn_frame = ttk.Frame(self.root)
        btn_frame.pack(pady=20)
        ttk.Button(btn_frame, text="Compute", command=self.on_compute).pack(side='left', padx=15)
        ttk.Button(btn_frame, text="Export...", command=self.on_export).pack(side='left', padx=15)
        ttk.Button(btn_frame, text="Choropleth map...", command=self.on_map).pack(side='left', padx=15)
        ttk.Button(btn_frame, text="Marginal effects...", command=self.on_effects).pack(side='left', padx=15)

    # ── Add / edit / remove ──────────────────────────────────

    def _append(self, formula, idx=None):
        if idx is None:
            self.model.formulas.append(formula)
            self.formula_list.insert(tk.END, f"{formula['name']} = {formula['expression']}")
        else:
            self.model.formulas.insert(idx, formula)
            self.formula_list.insert(idx, f"{formula['name']} = {formula['expression']}")

    def _add_variable(self):
        name = self.entry_name.get().strip()
        expr = self.entry_expression.get("1.0", tk.END).strip()
        if not name or not expr:
            messagebox.showwarning("Warning", "Please enter a variable name and an expression.")
            return

        self._append({'name': name, 'expression': expr, 'type': 'eval'})
        self.entry_name.delete(0, tk.END)
        self.entry_expression.delete("1.0", tk.END)

    def _add_gdp_per_capita(self):
        missing = [c for c in ('gdp_md_est', 'pop_est') if c not in self.model.available_vars]
        if missing:
            messagebox.showwarning("Warning", f"Column(s) not found: {', '.join(missing)}")
            return
        self._append({
            'name': 'gdp_per_cap',
            'expression': f"per_capita(gdp_md_est, pop_est) * {GDP_SCALE}",
            'type': 'per_capita',
            'numerator': 'gdp_md_est',
            'denominator': 'pop_est',
            'scale': GDP_SCALE,
        })

    def _edit_variable(self):
        try:
            idx = self.formula_list.curselection()[0]
        except IndexError:
            messagebox.showwarning("Warning", "Please select a variable to edit.")
            return

        formula = self.model.formulas.pop(idx)
        self.formula_list.delete(idx)

        if formula.get('type') == 'mean':
            def on_apply(name, mean_var, mean_groups):
                self._append(self._mean_formula(name, mean_var, mean_groups), idx)

            MeanVariableDialog(self.root, self.model.available_vars, on_apply=on_apply, initial_values=formula)
            return

        # Other kinds are edited as expressions and re-added with 'Add variable'
        self.entry_name.delete(0, tk.END)
        self.entry_name.insert(0, formula['name'])
        self.entry_expression.delete("1.0", tk.END)
        expr = formula['expression']
        if formula.get('type') == 'per_capita':
            expr = f"{formula['scale']} * {formula['numerator']} / {formula['denominator']}"
        self.entry_expression.insert("1.0", expr)

    def _remove_variable(self):
        try:
            idx = self.formula_list.curselection()[0]
        except IndexError:
            messagebox.showwarning("Warning", "Please select a variable to remove.")
            return

        formula_name = self.model.formulas[idx]['name']
        if messagebox.askyesno("Confirm", f"Remove variable '{formula_name}'?"):
            self.formula_list.delete(idx)
            self.model.formulas.pop(idx)

    # ── Group mean ───────────────────────────────────────────

    @staticmethod
    def _mean_formula(name, mean_var, mean_groups):
        return {
            'name': name,
            'expression': f"mean({mean_var}) by {', '.join(mean_groups)}",
            'type': 'mean',
            'mean_var': mean_var,
            'mean_groups': mean_groups,
        }

    def _open_mean_dialog(self):
        MeanVariableDialog(
            self.root,
            self.model.available_vars,
            on_apply=lambda name, var, groups: self._append(self._mean_formula(name, var, groups)),
        )
