import geopandas as gpd
import pandas as pd
import pytest

from logics.file_handler import (
    check_panel_continuity,
    export_geo_file,
    export_to_file,
    join_attributes,
    load_individual_files,
    read_table,
)


@pytest.fixture
def attributes():
    return pd.DataFrame({
        'iso_a3': ['ALP', 'BET', 'GAM', 'XXX'],
        'name': ['Alpha (table)', 'Beta (table)', 'Gamma (table)', 'Unknown'],
        'life_exp': [81.0, 78.5, 62.1, 70.0],
    })


def test_read_csv_falls_back_to_latin1(tmp_path):
    path = tmp_path / "countries.csv"
    path.write_bytes("name,pop_est\nCôte d'Ivoire,26000000\n".encode('latin-1'))

    df = read_table(str(path))

    assert df['name'].iloc[0] == "Côte d'Ivoire"


def test_load_individual_files_tracks_sources(tmp_path, world_gdf, attributes):
    geo_path = tmp_path / "world.geojson"
    world_gdf.to_file(geo_path, driver='GeoJSON')
    csv_path = tmp_path / "attributes.csv"
    attributes.to_csv(csv_path, index=False)
    calls = []

    dfs, sources, available = load_individual_files(
        {'GEO': str(geo_path), 'TABLE': str(csv_path)},
        progress_callback=lambda i, total, name: calls.append((i, total)),
    )

    assert isinstance(dfs['GEO'], gpd.GeoDataFrame)
    assert set(sources['iso_a3'].split('/')) == {'GEO', 'TABLE'}
    assert sources['life_exp'] == 'TABLE'
    assert 'geometry' not in available
    assert available == sorted(available)
    assert sorted(calls) == [(1, 2), (2, 2)]


def test_load_without_files_raises():
    with pytest.raises(ValueError):
        load_individual_files({'GEO': None, 'TABLE': None})


def test_join_keeps_geometry_and_shapes_columns(world_gdf, attributes):
    joined = join_attributes(world_gdf, attributes, 'iso_a3', 'iso_a3')

    assert isinstance(joined, gpd.GeoDataFrame)
    assert joined.crs == world_gdf.crs
    assert len(joined) == len(world_gdf)
    assert joined['name'].tolist() == world_gdf['name'].tolist()
    assert 'name_dup' not in joined.columns
    assert joined.set_index('iso_a3').loc['ALP', 'life_exp'] == 81.0
    assert pd.isna(joined.set_index('iso_a3').loc['ATA', 'life_exp'])


def test_join_with_differently_named_keys(world_gdf, attributes):
    table = attributes.rename(columns={'iso_a3': 'code'})

    joined = join_attributes(world_gdf, table, 'iso_a3', 'code')

    assert joined.set_index('iso_a3').loc['GAM', 'life_exp'] == 62.1


def test_join_missing_key_raises(world_gdf, attributes):
    with pytest.raises(ValueError, match="not found"):
        join_attributes(world_gdf, attributes, 'iso_a3', 'country_code')


def test_panel_continuity_reports_gaps():
    df = pd.DataFrame({
        'restaurant': ['A', 'A', 'A', 'B', 'B'],
        'year': [2010, 2011, 2012, 2010, 2013],
    })

    results = check_panel_continuity(df, 'restaurant', 'year')

    assert results['A']['continuous']
    assert results['A']['years'] == [2010, 2011, 2012]
    assert not results['B']['continuous']
    assert results['B']['gaps'] == ['2010 → 2013']


def test_panel_continuity_handles_float_years():
    df = pd.DataFrame({'id': [1, 1, 1], 'year': [2001.0, 2002.0, None]})

    results = check_panel_continuity(df, 'id', 'year')

    assert results[1] == {'years': [2001, 2002], 'continuous': True, 'gaps': []}


def test_export_excel_with_summary_sheets(tmp_path, world_gdf):
    path = tmp_path / "out.xlsx"
    summary = pd.DataFrame({'term': ['x'], 'estimate': [0.1]})

    export_to_file(world_gdf, str(path), summaries={'Marginal effects': summary})

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ['Results', 'Marginal effects']
    assert 'geometry' not in sheets['Results'].columns
    assert len(sheets['Results']) == len(world_gdf)


def test_export_truncates_long_sheet_names(tmp_path):
    path = tmp_path / "out.xlsx"
    df = pd.DataFrame({'a': [1]})

    export_to_file(df, str(path), summaries={'x' * 40: df})

    assert 'x' * 31 in pd.read_excel(path, sheet_name=None)


def test_export_csv(tmp_path):
    path = tmp_path / "out.csv"
    df = pd.DataFrame({'a': [1.5, float('nan')]})

    export_to_file(df, str(path))

    back = pd.read_csv(path)
    assert back.columns.tolist() == ['a']
    assert back['a'].iloc[0] == 1.5
    assert back['a'].isna().iloc[1]


def test_export_geojson_round_trip(tmp_path, world_gdf):
    path = tmp_path / "shapes.geojson"

    export_geo_file(world_gdf, str(path))

    assert gpd.read_file(path)['iso_a3'].tolist() == world_gdf['iso_a3'].tolist()
