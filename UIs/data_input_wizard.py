import tkinter as tk
from tkinter import ttk, filedialog


FILE_KINDS = {
    'GEO': ("Shapes (world countries, regions...)",
            [("Spatial files", "*.shp *.geojson *.json *.gpkg *.zip")]),
    'TABLE': ("Attribute / panel table",
              [("Excel/CSV files", "*.xlsx *.xls *.csv")]),
}


class DataInputWizard:
    """First screen – pick a shapes file and/or a data table (either is optional)."""

    def __init__(self, root, model, on_next):
        self.root = root
        self.model = model
        self.on_next = on_next

        self._build_ui()

    def _build_ui(self):
        frame = ttk.Frame(self.root)
        frame.pack(pady=20, padx=20, fill='both', expand=True)

        tk.Label(
            frame,
            text="Select input files (at least one)",
            font=("Arial", 12),
        ).pack(pady=10)

        self._labels = {}
        for ft, (caption, _) in FILE_KINDS.items():
            tk.Label(frame, text=f"{caption}:").pack(anchor='w')
            ttk.Button(
                frame,
                text=f"Browse {ft.lower()}",
                command=lambda t=ft: self._browse(t),
            ).pack(anchor='w', pady=2)
            path = self.model.file_paths.get(ft)
            lbl = tk.Label(frame, text=path or "Not selected", fg="green" if path else "gray")
            lbl.pack(anchor='w')
            self._labels[ft] = lbl

        ttk.Button(frame, text="Next >>", command=self.on_next).pack(pady=30)

    def _browse(self, file_type):
        path = filedialog.askopenfilename(filetypes=FILE_KINDS[file_type][1])
        if path:
            self.model.file_paths[file_type] = path
            self._labels[file_type].config(text=path, fg="green")
