import tkinter as tk
from tkinter import ttk, messagebox, filedialog

from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from pandas.api.types import is_numeric_dtype

from logics.choropleth import CMAPS, SCHEMES, prepare_choropleth, plot_choropleth, save_figure
from logics.file_handler import export_geo_file
from UIs.widgets import FuzzyListbox


class ChoroplethDialog:
    """
    Map a numeric column over the loaded shapes.

    Settings start from the DataModel defaults and are written back on every
    draw, so reopening the dialog keeps the last map.
    """

    def __init__(self, root, model, gdf):
        self._root = root
        self._model = model
        self._gdf = gdf
        self._fig = None
        self._prepared = None
        self._canvas = None
        self._build()

    def _build(self):
        win = tk.Toplevel(self._root)
        win.title("Choropleth map")
        win.geometry("1200x720")
        self._win = win

        controls = ttk.Frame(win, padding=8)
        controls.pack(side='left', fill='y')

        numeric_cols = sorted(str(c) for c in self._gdf.columns
                              if c != 'geometry' and is_numeric_dtype(self._gdf[c]))
        self._columns = FuzzyListbox(controls, title="Value column", items=numeric_cols, height=14)
        self._columns.pack(fill='both', expand=True)
        if self._model.map_column in numeric_cols:
            self._columns.set_selection([self._model.map_column])

        form = ttk.Frame(controls)
        form.pack(fill='x', pady=8)

        tk.Label(form, text="Colour map:").grid(row=0, column=0, sticky='e', pady=2)
        self._cmap = ttk.Combobox(form, values=CMAPS, width=16)
        self._cmap.set(self._model.map_cmap)
        self._cmap.grid(row=0, column=1, sticky='w')

        tk.Label(form, text="Classes:").grid(row=1, column=0, sticky='e', pady=2)
        self._scheme = ttk.Combobox(form, values=('continuous',) + SCHEMES, state='readonly', width=16)
        self._scheme.set(self._model.map_scheme or 'continuous')
        self._scheme.grid(row=1, column=1, sticky='w')

        tk.Label(form, text="Number of classes:").grid(row=2, column=0, sticky='e', pady=2)
        self._k = tk.Spinbox(form, from_=2, to=10, width=5)
        self._k.delete(0, tk.END)
        self._k.insert(0, str(self._model.map_k))
        self._k.grid(row=2, column=1, sticky='w')

        tk.Label(form, text="Projection (CRS):").grid(row=3, column=0, sticky='e', pady=2)
        self._crs = ttk.Entry(form, width=18)
        self._crs.insert(0, self._model.map_crs or '')
        self._crs.grid(row=3, column=1, sticky='w')

        tk.Label(form, text="Drop regions:").grid(row=4, column=0, sticky='e', pady=2)
        self._drop = ttk.Entry(form, width=18)
        self._drop.insert(0, ', '.join(self._model.map_drop_regions))
        self._drop.grid(row=4, column=1, sticky='w')

        ttk.Button(controls, text="Draw", command=self._draw).pack(fill='x', pady=2)
        ttk.Button(controls, text="Save PNG...", command=self._save_png).pack(fill='x', pady=2)
        ttk.Button(controls, text="Export shapes...", command=self._export_shapes).pack(fill='x', pady=2)
        ttk.Button(controls, text="Close", command=win.destroy).pack(fill='x', pady=(12, 2))

        self._plot_frame = ttk.Frame(win)
        self._plot_frame.pack(side='right', fill='both', expand=True)

    def _draw(self):
        column = self._columns.get_first()
        if not column:
            messagebox.showwarning("Missing column", "Please select a column to map.", parent=self._win)
            return

        scheme = self._scheme.get()
        scheme = None if scheme == 'continuous' else scheme
        drop = [r.strip() for r in self._drop.get().split(',') if r.strip()]
        crs = self._crs.get().strip() or None
        try:
            k = int(self._k.get())
            self._prepared = prepare_choropleth(self._gdf, column, drop_regions=drop, crs=crs)
            fig = plot_choropleth(self._prepared, column, cmap=self._cmap.get() or 'OrRd',
                                  scheme=scheme, k=k)
        except Exception as e:
            messagebox.showerror("Map error", str(e), parent=self._win)
            return

        m = self._model
        m.map_column, m.map_cmap, m.map_scheme, m.map_k = column, self._cmap.get(), scheme, k
        m.map_crs, m.map_drop_regions = crs, drop

        if self._canvas is not None:
            self._canvas.get_tk_widget().destroy()
        self._fig = fig
        self._canvas = FigureCanvasTkAgg(fig, master=self._plot_frame)
        self._canvas.draw()
        self._canvas.get_tk_widget().pack(fill='both', expand=True)

    def _save_png(self):
        if self._fig is None:
            messagebox.showwarning("Nothing to save", "Draw a map first.", parent=self._win)
            return
        path = filedialog.asksaveasfilename(defaultextension=".png", filetypes=[("PNG", "*.png")], parent=self._win)
        if path:
            try:
                save_figure(self._fig, path, dpi=self._model.map_dpi)
            except Exception as e:
                messagebox.showerror("Save error", str(e), parent=self._win)

    def _export_shapes(self):
        gdf = self._prepared if self._prepared is not None else self._gdf
        path = filedialog.asksaveasfilename(
            defaultextension=".geojson",
            filetypes=[("GeoJSON", "*.geojson"), ("GeoPackage", "*.gpkg")],
            parent=self._win,
        )
        if path:
            try:
                export_geo_file(gdf, path)
            except Exception as e:
                messagebox.showerror("Export error", str(e), parent=self._win)
