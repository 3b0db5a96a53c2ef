import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from shapely.geometry import box


@pytest.fixture
def world_gdf():
    """Five rectangular 'countries' with the attribute layout of the Natural Earth low-res table."""
    return gpd.GeoDataFrame(
        {
            'name': ['Alpha', 'Beta', 'Gamma', 'Delta', 'Antarctica'],
            'iso_a3': ['ALP', 'BET', 'GAM', 'DEL', 'ATA'],
            'continent': ['Europe', 'Europe', 'Africa', 'Africa', 'Antarctica'],
            'pop_est': [1_000_000, 2_000_000, 500_000, 0, 4_000],
            'gdp_md_est': [50_000.0, 20_000.0, 1_000.0, 300.0, 0.0],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(0, 1, 1, 2), box(1, 1, 2, 2), box(0, -3, 2, -2)],
        crs="EPSG:4326",
    )


@pytest.fixture
def inspections_df():
    """
    Synthetic inspection panel with a binary outcome drawn from a logit model:
    P(violation) = F(-0.5 + 1.0 * score_gap + 0.8 * weekend).
    """
    rng = np.random.default_rng(42)
    n = 5000
    score_gap = rng.normal(0, 1, n)
    weekend = rng.binomial(1, 0.3, n)
    p = 1 / (1 + np.exp(-(-0.5 + 1.0 * score_gap + 0.8 * weekend)))
    return pd.DataFrame({
        'restaurant_id': np.repeat(np.arange(n // 5), 5),
        'year': np.tile(np.arange(2010, 2015), n // 5),
        'score_gap': score_gap,
        'weekend': weekend,
        'violation': rng.binomial(1, p),
    })
