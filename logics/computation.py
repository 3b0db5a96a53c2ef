import os
import re
from functools import partial
from multiprocessing import Pool

import numpy as np
import pandas as pd


# Below this many rows an expression is evaluated in-process; pool start-up costs more than it saves.
PARALLEL_MIN_ROWS = 50_000

GDP_SCALE = 1e6  # gdp_md_est is reported in millions of dollars

_MEAN_PATTERN = re.compile(r'^\s*mean\s*\((.+?)\)\s*by\s*(.+)$')
_PER_CAPITA_PATTERN = re.compile(r'^\s*per_capita\s*\(\s*(\w+)\s*,\s*(\w+)\s*\)\s*(?:\*\s*([0-9.eE+-]+))?\s*$')


def per_capita(df, numerator, denominator, scale=1.0):
    """
    Row-wise ``scale * numerator / denominator``.

    A zero or missing denominator yields NaN rather than inf, so the column
    can be mapped and exported directly.
    """
    num = pd.to_numeric(df[numerator], errors='coerce')
    den = pd.to_numeric(df[denominator], errors='coerce')
    with np.errstate(divide='ignore', invalid='ignore'):
        result = scale * num / den
    return _sanitize_result(result.astype(float))


def gdp_per_capita(df, gdp_col='gdp_md_est', pop_col='pop_est'):
    """GDP per capita in dollars: 1e6 * GDP estimate (millions) / population."""
    return per_capita(df, gdp_col, pop_col, scale=GDP_SCALE)


def compute_variables(df, formulas, key_cols=None, progress_callback=None):
    """
    Compute all formula-based variables.

    Supports:
        - eval: pandas expressions such as ``1e6 * gdp_md_est / pop_est``
        - per_capita: scaled ratio of two columns (NaN on zero denominators)
        - mean: group mean broadcast back to every row
        - Chaining: variables computed in order, later vars can reference earlier ones

    Args:
        df: pandas DataFrame (original, not modified).
        formulas: list of formula dicts, each with at least 'name' and 'expression'.
        key_cols: columns copied into the result to identify rows.
        progress_callback: Optional callable(formula_idx, total_formulas, formula_name)

    Returns:
        A new DataFrame with the key columns and all calculated variables.
    """
    key_cols = [c for c in (key_cols or []) if c in df.columns]
    result_df = df[key_cols].copy() if key_cols else pd.DataFrame(index=df.index)
    context_df = pd.DataFrame(df).copy()
    total_formulas = len(formulas)

    for idx, f in enumerate(formulas):
        formula_name = f['name']
        if progress_callback:
            progress_callback(idx + 1, total_formulas, formula_name)

        f = _resolve_formula_type(f)
        kind = f.get('type', 'eval')

        if kind == 'mean':
            values = _compute_mean(context_df, f)
        elif kind == 'per_capita':
            print(f"[PER_CAPITA] {formula_name} = {f.get('scale', 1.0)} * {f['numerator']} / {f['denominator']}")
            values = per_capita(context_df, f['numerator'], f['denominator'], f.get('scale', 1.0))
        else:
            values = _compute_eval_formula_parallel(context_df, f['expression'])

        values = _sanitize_result(pd.Series(values, index=context_df.index))
        result_df[formula_name] = values
        context_df[formula_name] = values

    return result_df


def _resolve_formula_type(f):
    """Detect the formula type from its expression when the 'type' field is missing."""
    if f.get('type') in ('mean', 'per_capita', 'eval'):
        return f

    expr = f.get('expression', '')
    m = _MEAN_PATTERN.match(expr)
    if m:
        print(f"[WARN] Formula '{f['name']}' missing type field; detected as mean from expression.")
        return dict(f, type='mean',
                    mean_var=m.group(1).strip(),
                    mean_groups=[g.strip() for g in m.group(2).split(',')])

    m = _PER_CAPITA_PATTERN.match(expr)
    if m:
        print(f"[WARN] Formula '{f['name']}' missing type field; detected as per_capita from expression.")
        return dict(f, type='per_capita',
                    numerator=m.group(1), denominator=m.group(2),
                    scale=float(m.group(3)) if m.group(3) else 1.0)

    return dict(f, type='eval')


def _compute_mean(df, formula):
    """
    Compute a grouped mean variable and return the result series.

    Rows whose group column contains NaN are still assigned the mean of their
    NaN group (dropna=False).
    """
    mean_var = formula['mean_var']
    groups = formula['mean_groups']

    print(f"[MEAN] Computing mean({mean_var}) grouped by {groups}")
    return df.groupby(groups, dropna=False)[mean_var].transform('mean')


def _compute_eval_formula_parallel(df, expr):
    """
    Compute an eval formula, splitting rows into chunks across processes for large frames.
    """
    num_workers = os.cpu_count() or 4

    if len(df) < PARALLEL_MIN_ROWS:
        return df.eval(expr)

    chunk_size = max(1, len(df) // num_workers)
    chunks = [(i, min(i + chunk_size, len(df))) for i in range(0, len(df), chunk_size)]
    print(f"[Parallel] Processing {len(chunks)} chunks across {num_workers} workers...")

    worker_func = partial(_compute_eval_chunk, df=df, expr=expr)
    with Pool(processes=num_workers) as pool:
        chunk_results = pool.map(worker_func, chunks)

    # Chunks are contiguous iloc ranges, so concatenation restores row order
    return pd.concat(chunk_results)


def _compute_eval_chunk(chunk_range, df, expr):
    """Process a single chunk for eval formula (for multiprocessing)."""
    start, end = chunk_range
    chunk = df.iloc[start:end]
    result = chunk.eval(expr)
    if not isinstance(result, pd.Series):
        # constant expressions evaluate to a scalar; broadcast it over the chunk
        result = pd.Series(result, index=chunk.index)
    return result


def _sanitize_result(series):
    """Replace inf and -inf with NaN so they export as blank cells and map as missing."""
    return series.replace([np.inf, -np.inf], np.nan)
