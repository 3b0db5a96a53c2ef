class DataModel:
    """Shared state container for the application."""

    def __init__(self):
        self.table_df = None                        # Attribute / panel table as loaded
        self.geo_df = None                          # Shapes (GeoDataFrame) as loaded
        self.df = None                              # Working frame (joined if both files given)
        self.calculated_df = None                   # Keys + derived variables
        self.dfs_by_type = {}                       # Individual DFs keyed by 'GEO' / 'TABLE'
        self.file_paths = {'GEO': None, 'TABLE': None}
        self.column_sources = {}                    # Maps column name to file type(s)
        self.available_vars = []                    # All unique columns from loaded files

        self.geo_key = None                         # Join key on the shapes side (e.g. iso_a3)
        self.table_key = None                       # Join key on the table side
        self.id_col = None                          # Panel entity column (optional)
        self.time_col = None                        # Panel time column (optional)

        self.formulas = []                          # Derived variables, computed in order

        # Choropleth defaults
        self.map_column = 'gdp_per_cap'
        self.map_cmap = 'OrRd'
        self.map_scheme = 'quantiles'
        self.map_k = 5
        self.map_crs = None
        self.map_drop_regions = ['Antarctica']
        self.map_dpi = 300

        # Model defaults
        self.link = 'logit'
        self.policy = 'ame'
        self.model_fit = None                       # BinaryModelFit
        self.effects_df = None                      # Tidy marginal-effects table

    def key_columns(self):
        """Columns carried into the derived-variable result frame."""
        keys = []
        for col in (self.geo_key or self.table_key, self.id_col, self.time_col):
            if col and col not in keys:
                keys.append(col)
        return keys

    def working_frame(self):
        """Loaded data with the derived variables attached (derived columns win on name clashes)."""
        if self.df is None or self.calculated_df is None:
            return self.df
        derived = [c for c in self.calculated_df.columns if c not in self.key_columns()]
        return self.df.assign(**{c: self.calculated_df[c] for c in derived})

    def refresh_available_vars(self):
        """Re-read the column list from the working frame (after joins / computations)."""
        if self.df is None:
            return
        cols = [c for c in self.df.columns if c != 'geometry']
        if self.calculated_df is not None:
            cols += [c for c in self.calculated_df.columns if c not in cols]
        self.available_vars = sorted(set(map(str, cols)))
