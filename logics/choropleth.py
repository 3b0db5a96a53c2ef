import numpy as np
import pandas as pd
from matplotlib.figure import Figure


SCHEMES = ('quantiles', 'equal_interval')
CMAPS = ('OrRd', 'Blues', 'YlGn', 'viridis', 'plasma', 'RdYlBu', 'Greys')


def prepare_choropleth(gdf, column, drop_regions=None, region_col='name', crs=None):
    """
    Get a GeoDataFrame ready for mapping `column`.

    - Regions listed in `drop_regions` (matched on `region_col`) are removed;
      Antarctica is the usual one, it dominates most projections.
    - The frame is reprojected when `crs` is given.
    - The value column is coerced to numeric; non-finite values become NaN and
      are drawn as "no data".

    Raises:
        ValueError: If `column` is not in the frame.
    """
    if column not in gdf.columns:
        raise ValueError(f"Column '{column}' not found. Compute it first or pick another column.")

    out = gdf
    if drop_regions:
        if region_col in out.columns:
            keep = ~out[region_col].isin(drop_regions)
            print(f"[MAP] Dropping {int((~keep).sum())} region(s): {list(drop_regions)}")
            out = out[keep]
        else:
            print(f"[WARN] Region column '{region_col}' not found; nothing dropped.")

    if crs:
        print(f"[MAP] Reprojecting {out.crs} -> {crs}")
        out = out.to_crs(crs)

    values = pd.to_numeric(out[column], errors='coerce').replace([np.inf, -np.inf], np.nan)
    out = out.assign(**{column: values})

    missing = int(values.isna().sum())
    if missing:
        print(f"[MAP] {missing} of {len(out)} regions have no value for '{column}'")
    return out


def classify(values, scheme='quantiles', k=5):
    """
    Bin a numeric series into `k` classes.

    Schemes:
        - quantiles: each class holds roughly the same number of regions
        - equal_interval: classes span equal value ranges

    Duplicate quantile edges are merged, so fewer than `k` classes can come
    back for heavily tied data.

    Returns:
        tuple: (ordered categorical Series of range labels, bin edges array).
        Missing values stay missing.

    Raises:
        ValueError: On an unknown scheme, k < 2, or fewer than two distinct values.
    """
    if scheme not in SCHEMES:
        raise ValueError(f"Unknown classification scheme '{scheme}'. Use one of {SCHEMES}.")
    if k < 2:
        raise ValueError("At least two classes are needed.")

    values = pd.to_numeric(pd.Series(values), errors='coerce')
    clean = values.dropna()
    if clean.nunique() < 2:
        raise ValueError("Need at least two distinct values to classify.")

    if scheme == 'quantiles':
        _, edges = pd.qcut(clean, k, retbins=True, duplicates='drop')
    else:
        _, edges = pd.cut(clean, k, retbins=True)

    labels = _range_labels(edges)
    binned = pd.cut(values, bins=edges, labels=labels, include_lowest=True)
    return binned, edges


def _range_labels(edges):
    """Format "lo – hi" labels, adding precision until every label is distinct."""
    for extra in range(10):
        labels = [f"{_format_value(lo, extra)} – {_format_value(hi, extra)}"
                  for lo, hi in zip(edges[:-1], edges[1:])]
        if len(set(labels)) == len(labels):
            return labels
    return [f"{i + 1}: {label}" for i, label in enumerate(labels)]


def _format_value(x, extra=0):
    if abs(x) >= 100:
        return f"{x:,.{extra}f}"
    return f"{x:.{3 + extra}g}"


def plot_choropleth(gdf, column, cmap='OrRd', scheme=None, k=5, title=None, ax=None,
                    missing_color='lightgrey', legend=True):
    """
    Draw a choropleth of `column` and return the matplotlib Figure.

    With `scheme` set, regions are coloured by class (see `classify`) with a
    categorical legend; otherwise the colour scale is continuous with a colorbar.
    Regions without a value are drawn in `missing_color`.
    """
    if ax is None:
        fig = Figure(figsize=(12, 7))
        ax = fig.add_subplot(111)
    else:
        fig = ax.figure

    missing_kwds = {'color': missing_color, 'label': 'No data'}
    style = {'edgecolor': 'white', 'linewidth': 0.3}

    if scheme:
        binned, _ = classify(gdf[column], scheme=scheme, k=k)
        print(f"[MAP] {column}: {len(binned.cat.categories)} {scheme} classes")
        gdf.assign(_class=binned).plot(
            column='_class',
            cmap=cmap,
            categorical=True,
            legend=legend,
            ax=ax,
            missing_kwds=missing_kwds,
            legend_kwds={'title': column, 'loc': 'lower left', 'fontsize': 8},
            **style,
        )
    else:
        gdf.plot(
            column=column,
            cmap=cmap,
            legend=legend,
            ax=ax,
            missing_kwds=missing_kwds,
            legend_kwds={'label': column, 'orientation': 'horizontal', 'shrink': 0.6},
            **style,
        )

    ax.set_title(title or column)
    ax.set_axis_off()
    return fig


def save_figure(fig, path, dpi=300):
    fig.savefig(path, dpi=dpi, bbox_inches='tight')
    print(f"[MAP] Figure saved to {path}")
