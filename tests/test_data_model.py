import geopandas as gpd

from logics.computation import compute_variables
from logics.data_model import DataModel


def test_defaults():
    model = DataModel()

    assert model.file_paths == {'GEO': None, 'TABLE': None}
    assert model.map_drop_regions == ['Antarctica']
    assert model.link == 'logit' and model.policy == 'ame'
    assert model.working_frame() is None


def test_key_columns_skip_unset_and_duplicates():
    model = DataModel()
    model.geo_key = model.table_key = 'iso_a3'
    model.id_col, model.time_col = 'iso_a3', 'year'

    assert model.key_columns() == ['iso_a3', 'year']


def test_working_frame_attaches_derived_variables(world_gdf):
    model = DataModel()
    model.df = world_gdf
    model.geo_key = 'iso_a3'
    model.formulas = [{'name': 'pop_m', 'expression': 'pop_est / 1e6'}]
    model.calculated_df = compute_variables(model.df, model.formulas, key_cols=model.key_columns())

    frame = model.working_frame()
    model.refresh_available_vars()

    assert isinstance(frame, gpd.GeoDataFrame)
    assert frame['pop_m'].iloc[0] == 1.0
    assert 'pop_m' in model.available_vars
    assert 'geometry' not in model.available_vars
