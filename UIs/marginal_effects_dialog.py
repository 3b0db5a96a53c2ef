import tkinter as tk
from tkinter import ttk, messagebox, filedialog

from pandas.api.types import is_numeric_dtype

from logics.file_handler import export_to_file
from logics.marginal_effects import (
    Link,
    Policy,
    fit_binary_model,
    parse_at_values,
    summarize_marginal_effects,
)
from UIs.progress_dialog import ProgressDialog
from UIs.widgets import FuzzyListbox


class MarginalEffectsDialog:
    """
    Fit a logit / probit model and report marginal effects.

    Layout:
        - Left : outcome (single) and predictors (multi) column pickers
        - Right: link, aggregation policy, representative values, group-by
        - Bottom: coefficient table and marginal-effects table, export button
    """

    def __init__(self, root, model, df):
        self._root = root
        self._model = model
        self._df = df
        self._build()

    def _build(self):
        win = tk.Toplevel(self._root)
        win.title("Marginal effects")
        win.geometry("1000x760")
        self._win = win

        numeric_cols = sorted(str(c) for c in self._df.columns
                              if c != 'geometry' and is_numeric_dtype(self._df[c]))
        all_cols = sorted(str(c) for c in self._df.columns if c != 'geometry')

        top = ttk.Frame(win, padding=8)
        top.pack(fill='x')

        self._outcome = FuzzyListbox(top, title="Outcome (0/1)", items=numeric_cols, height=8)
        self._outcome.pack(side='left', fill='both', expand=True, padx=(0, 6))
        self._predictors = FuzzyListbox(top, title="Predictors", items=numeric_cols,
                                        selectmode='multiple', height=8)
        self._predictors.pack(side='left', fill='both', expand=True, padx=6)
        if self._model.model_fit is not None:
            self._outcome.set_selection([self._model.model_fit.outcome])
            self._predictors.set_selection(self._model.model_fit.predictors)

        form = ttk.LabelFrame(top, text="Options", padding=8)
        form.pack(side='left', fill='y', padx=(6, 0))

        tk.Label(form, text="Link:").grid(row=0, column=0, sticky='e', pady=2)
        self._link = ttk.Combobox(form, values=[l.value for l in Link], state='readonly', width=12)
        self._link.set(self._model.link)
        self._link.grid(row=0, column=1, sticky='w')

        tk.Label(form, text="Aggregation:").grid(row=1, column=0, sticky='e', pady=2)
        self._policy = ttk.Combobox(form, values=[p.value for p in Policy], state='readonly', width=12)
        self._policy.set(self._model.policy)
        self._policy.grid(row=1, column=1, sticky='w')

        tk.Label(form, text="At (MER):").grid(row=2, column=0, sticky='e', pady=2)
        self._at = ttk.Entry(form, width=24)
        self._at.grid(row=2, column=1, sticky='w')
        tk.Label(form, text="e.g. Weekend=0,1; Year=2010", fg="gray").grid(row=3, column=1, sticky='w')

        tk.Label(form, text="By (AME):").grid(row=4, column=0, sticky='e', pady=2)
        self._by = ttk.Combobox(form, values=[''] + all_cols, width=22)
        self._by.grid(row=4, column=1, sticky='w')

        ttk.Button(form, text="Fit & compute", command=self._run).grid(row=5, column=0, columnspan=2, pady=(10, 2), sticky='ew')
        ttk.Button(form, text="Export...", command=self._export).grid(row=6, column=0, columnspan=2, pady=2, sticky='ew')

        self._status = tk.Label(win, text="", fg="gray", anchor='w')
        self._status.pack(fill='x', padx=10)

        self._coef_tree = self._make_table(win, "Coefficients",
                                           ('term', 'coef', 'std_error', 'z', 'p_value'), height=6)
        self._effects_tree = self._make_table(win, "Marginal effects",
                                              ('term', 'policy', 'at / group', 'estimate', 'std_error',
                                               'p_value', 'conf_low', 'conf_high'), height=10)

        if self._model.effects_df is not None and self._model.model_fit is not None:
            self._show_results(self._model.model_fit, self._model.effects_df)

    @staticmethod
    def _make_table(parent, title, columns, height):
        frame = ttk.LabelFrame(parent, text=title, padding=5)
        frame.pack(fill='both', expand=True, padx=10, pady=5)
        tree = ttk.Treeview(frame, columns=columns, show='headings', height=height)
        for col in columns:
            tree.heading(col, text=col)
            tree.column(col, width=110, anchor='e' if col not in ('term', 'policy', 'at / group') else 'w')
        tree.pack(fill='both', expand=True)
        return tree

    def _run(self):
        outcome = self._outcome.get_first()
        predictors = [p for p in self._predictors.get_selection() if p != outcome]
        if not outcome or not predictors:
            messagebox.showwarning("Missing columns", "Select an outcome and at least one predictor.", parent=self._win)
            return

        link, policy = self._link.get(), self._policy.get()
        by = self._by.get() or None
        try:
            at = parse_at_values(self._at.get()) if policy == Policy.MER.value else None
        except ValueError as e:
            messagebox.showerror("Representative values", str(e), parent=self._win)
            return

        def task(_progress_cb):
            fit = fit_binary_model(self._df, outcome, predictors, link=link)
            effects = summarize_marginal_effects(
                fit, self._df.dropna(subset=[outcome] + predictors),
                policy=policy, at=at, by=by if policy == Policy.AME.value else None,
            )
            return fit, effects

        def on_success(result):
            fit, effects = result
            self._model.link, self._model.policy = link, policy
            self._model.model_fit, self._model.effects_df = fit, effects
            self._show_results(fit, effects)

        def on_error(err):
            messagebox.showerror("Model error", err, parent=self._win)

        ProgressDialog(self._win, "Fitting...", f"Fitting {link} model...", indeterminate=True).run(
            task, on_success=on_success, on_error=on_error)

    def _show_results(self, fit, effects):
        status = f"{fit.link.value}: n={fit.n_obs}, log-likelihood={fit.log_likelihood:.3f}"
        if not fit.converged:
            status += "  (WARNING: did not converge)"
        self._status.config(text=status, fg="black" if fit.converged else "red")

        self._coef_tree.delete(*self._coef_tree.get_children())
        for row in fit.summary_frame().itertuples(index=False):
            self._coef_tree.insert('', 'end', values=(
                row.term, f"{row.coef:.4f}", f"{row.std_error:.4f}", f"{row.z:.2f}", f"{row.p_value:.4f}"))

        fixed = {'term', 'policy', 'estimate', 'std_error', 'z', 'p_value', 'conf_low', 'conf_high'}
        extra_cols = [c for c in effects.columns if c not in fixed]
        self._effects_tree.delete(*self._effects_tree.get_children())
        for _, row in effects.iterrows():
            where = ', '.join(f"{c}={row[c]}" for c in extra_cols)
            self._effects_tree.insert('', 'end', values=(
                row['term'], row['policy'], where, f"{row['estimate']:.4f}", f"{row['std_error']:.4f}",
                f"{row['p_value']:.4f}", f"{row['conf_low']:.4f}", f"{row['conf_high']:.4f}"))

    def _export(self):
        fit, effects = self._model.model_fit, self._model.effects_df
        if fit is None or effects is None:
            messagebox.showwarning("Nothing to export", "Fit a model first.", parent=self._win)
            return
        path = filedialog.asksaveasfilename(defaultextension=".xlsx", filetypes=[("Excel", "*.xlsx")],
                                            parent=self._win)
        if path:
            try:
                export_to_file(fit.summary_frame(), path, summaries={'Marginal effects': effects})
                messagebox.showinfo("Exported", f"Saved: {path}", parent=self._win)
            except Exception as e:
                messagebox.showerror("Export error", str(e), parent=self._win)
