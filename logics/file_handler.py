import os
from concurrent.futures import ThreadPoolExecutor, as_completed

import geopandas as gpd
import numpy as np
import pandas as pd


GEO_EXTENSIONS = ('.shp', '.geojson', '.json', '.gpkg', '.zip')
CSV_ENCODINGS = ['utf-8', 'utf-8-sig', 'latin-1', 'cp1252', 'iso-8859-1']


def read_table(path):
    """
    Read a single file into a DataFrame (or GeoDataFrame for spatial formats).

    CSV files are tried with several encodings so that country names with
    accents load cleanly.
    """
    filename = os.path.basename(path)
    lower = path.lower()

    if lower.endswith(GEO_EXTENSIONS):
        gdf = gpd.read_file(path)
        print(f"[LOAD] {filename}: {len(gdf)} shapes, crs={gdf.crs}")
        return gdf

    if lower.endswith('.csv'):
        for enc in CSV_ENCODINGS:
            try:
                df = pd.read_csv(path, encoding=enc)
                print(f"[LOAD] {filename} loaded with encoding: {enc}")
                return df
            except (UnicodeDecodeError, LookupError):
                continue
        raise ValueError(f"Could not load {filename} with any supported encoding")

    return pd.read_excel(path)


def load_individual_files(file_paths, progress_callback=None):
    """
    Load the selected files in parallel (multi-threaded).

    Args:
        file_paths: dict mapping file type ('GEO', 'TABLE') to file path.
        progress_callback: Optional callable(current_idx, total, filename) for progress updates.

    Returns:
        tuple: (dfs_by_type, column_sources, available_vars)
        - dfs_by_type: dict of DataFrames keyed by file type
        - column_sources: dict mapping column name to file type(s)
        - available_vars: list of all unique column names (geometry excluded)

    Raises:
        ValueError: If no files were selected.
    """
    selected_files = {k: v for k, v in file_paths.items() if v is not None}
    if not selected_files:
        raise ValueError("No file selected.")

    dfs_by_type = {}
    column_sources = {}
    total_files = len(selected_files)
    completed = 0

    def load_single_file(ft, path):
        return ft, read_table(path), os.path.basename(path)

    with ThreadPoolExecutor(max_workers=min(total_files, os.cpu_count() or 1)) as executor:
        futures = {
            executor.submit(load_single_file, ft, path): ft
            for ft, path in selected_files.items()
        }

        for future in as_completed(futures):
            completed += 1
            ft, df_temp, filename = future.result()

            if progress_callback:
                progress_callback(completed, total_files, filename)
            print(f"[LOAD] Completed {completed}/{total_files}: {filename}")

            dfs_by_type[ft] = df_temp
            for col in df_temp.columns:
                if col == 'geometry':
                    continue
                if col not in column_sources:
                    column_sources[col] = ft
                elif ft not in column_sources[col]:
                    column_sources[col] += f"/{ft}"

    available_vars = sorted(set(column_sources.keys()))
    return dfs_by_type, column_sources, available_vars


def join_attributes(geo_df, table_df, geo_key, table_key, how='left'):
    """
    Join an attribute table onto a set of shapes.

    Columns present in both frames keep the shapes' version (the table's copy
    is dropped). The result is always a GeoDataFrame with the shapes' CRS.

    Raises:
        ValueError: If a key column is missing.
    """
    if geo_key not in geo_df.columns:
        raise ValueError(f"Join key '{geo_key}' not found in shapes file.")
    if table_key not in table_df.columns:
        raise ValueError(f"Join key '{table_key}' not found in table.")

    right = table_df
    if isinstance(right, gpd.GeoDataFrame):
        right = pd.DataFrame(right.drop(columns=right.geometry.name))

    merged = geo_df.merge(
        right, left_on=geo_key, right_on=table_key, how=how,
        suffixes=('', '_dup'), indicator='_join',
    )
    unmatched = int((merged['_join'] == 'left_only').sum())
    merged = merged.drop(columns='_join')

    dup_cols = [c for c in merged.columns if str(c).endswith('_dup')]
    if dup_cols:
        print(f"[JOIN] Dropping duplicate columns (keeping shapes' version): {dup_cols}")
        merged = merged.drop(columns=dup_cols)

    print(f"[JOIN] {len(merged)} rows joined on {geo_key} = {table_key}, {unmatched} without attributes")
    return gpd.GeoDataFrame(merged, geometry=geo_df.geometry.name, crs=geo_df.crs)


def check_panel_continuity(df, id_col, time_col):
    """
    Check whether each entity in a panel is observed in consecutive periods.

    Returns:
        dict: entity -> {'years': [...], 'continuous': bool, 'gaps': ['2015 → 2017', ...]}
    """
    results = {}
    for entity_id, group in df.groupby(id_col):
        years = sorted(group[time_col].dropna().unique())
        if not years:
            results[entity_id] = {'years': [], 'continuous': False, 'gaps': []}
            continue

        years = [int(y) if isinstance(y, float) and y.is_integer() else y for y in years]
        gaps = []
        # Only integer periods (years) can be checked for gaps
        if all(isinstance(y, (int, np.integer)) for y in years):
            for prev, nxt in zip(years, years[1:]):
                if nxt - prev != 1:
                    gaps.append(f"{prev} → {nxt}")

        results[entity_id] = {'years': years, 'continuous': not gaps, 'gaps': gaps}
    return results


def export_to_file(df, path, summaries=None):
    """
    Export results to Excel or CSV.

    Sheet layout (.xlsx):
        - "Results": the full frame (geometry dropped).
        - One sheet per entry in `summaries` (name -> DataFrame), e.g. a
          marginal-effects table. Sheet names are truncated to 31 chars.

    For .csv only the main frame is written.
    """
    if isinstance(df, gpd.GeoDataFrame):
        df = pd.DataFrame(df.drop(columns=df.geometry.name))

    if path.lower().endswith('.csv'):
        df.to_csv(path, index=False)
        print(f"[EXPORT] {len(df)} rows written to {path}")
        return

    with pd.ExcelWriter(path, engine='xlsxwriter') as writer:
        df.to_excel(writer, sheet_name='Results', index=False)
        for name, summary in (summaries or {}).items():
            sheet_name = name[:31]
            summary.to_excel(writer, sheet_name=sheet_name, index=False)
            print(f"[EXPORT] Summary sheet '{sheet_name}' written ({len(summary)} rows)")


def export_geo_file(gdf, path):
    """Write shapes with their attributes to GeoJSON or GeoPackage."""
    if path.lower().endswith('.gpkg'):
        gdf.to_file(path, driver='GPKG')
    else:
        gdf.to_file(path, driver='GeoJSON')
    print(f"[EXPORT] {len(gdf)} shapes written to {path}")
