"""
Tests for logit / probit fitting and marginal effects.

Checks the closed-form effect, coefficient recovery on simulated data, and
the relationships between the aggregation policies:
    - AME is the mean of the row-level effects
    - MER with no representative values is the MEM
    - group AMEs average back (size-weighted) to the overall AME
"""

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from logics.marginal_effects import (
    Link,
    Policy,
    average_marginal_effect,
    fit_binary_model,
    marginal_effect,
    marginal_effect_at_mean,
    marginal_effect_at_representative,
    marginal_effects_by_row,
    parse_at_values,
    predict_probability,
    summarize_marginal_effects,
)


@pytest.fixture
def logit_fit(inspections_df):
    return fit_binary_model(inspections_df, 'violation', ['score_gap', 'weekend'], link='logit')


# ── Closed form ────────────────────────────────────────────

def test_logit_marginal_effect_closed_form():
    assert marginal_effect(0.8, 0.3) == pytest.approx(0.8 * 0.3 * 0.7)


def test_marginal_effect_is_largest_at_one_half():
    probs = np.array([0.1, 0.3, 0.5, 0.7, 0.9])

    effects = marginal_effect(1.0, probs)

    assert np.argmax(effects) == 2


def test_probit_density_from_probability():
    assert Link.PROBIT.pdf_from_probability(0.5) == pytest.approx(stats.norm.pdf(0))
    assert marginal_effect(2.0, 0.5, link='probit') == pytest.approx(2.0 * stats.norm.pdf(0))


def test_unknown_link_rejected():
    with pytest.raises(ValueError):
        marginal_effect(1.0, 0.5, link='cloglog')


# ── Fitting ────────────────────────────────────────────────

def test_logit_recovers_coefficients(logit_fit):
    assert logit_fit.converged
    assert logit_fit.n_obs == 5000
    assert logit_fit.params['Intercept'] == pytest.approx(-0.5, abs=0.2)
    assert logit_fit.params['score_gap'] == pytest.approx(1.0, abs=0.2)
    assert logit_fit.params['weekend'] == pytest.approx(0.8, abs=0.2)
    assert (logit_fit.bse > 0).all()
    assert logit_fit.log_likelihood < 0


def test_summary_frame_lists_every_term(logit_fit):
    table = logit_fit.summary_frame()

    assert table['term'].tolist() == ['Intercept', 'score_gap', 'weekend']
    assert (table['p_value'].between(0, 1)).all()


def test_probit_and_logit_ames_agree(inspections_df, logit_fit):
    probit_fit = fit_binary_model(inspections_df, 'violation', ['score_gap', 'weekend'], link='probit')

    assert probit_fit.converged
    assert average_marginal_effect(probit_fit, inspections_df, 'score_gap') == pytest.approx(
        average_marginal_effect(logit_fit, inspections_df, 'score_gap'), abs=0.02)


def test_rows_with_missing_values_are_dropped(inspections_df):
    df = inspections_df.copy()
    df.loc[:9, 'score_gap'] = np.nan

    fit = fit_binary_model(df, 'violation', ['score_gap', 'weekend'])

    assert fit.n_obs == 4990


def test_non_binary_outcome_rejected(inspections_df):
    with pytest.raises(ValueError, match="0/1"):
        fit_binary_model(inspections_df, 'year', ['score_gap'])


def test_outcome_without_variation_rejected(inspections_df):
    df = inspections_df.assign(violation=1)

    with pytest.raises(ValueError, match="no variation"):
        fit_binary_model(df, 'violation', ['score_gap'])


def test_missing_column_rejected(inspections_df):
    with pytest.raises(ValueError, match="not found"):
        fit_binary_model(inspections_df, 'violation', ['no_such_column'])


def test_text_predictor_rejected(inspections_df):
    df = inspections_df.assign(city='Springfield')

    with pytest.raises(ValueError, match="not numeric"):
        fit_binary_model(df, 'violation', ['city'])


def test_collinear_predictors_rejected(inspections_df):
    df = inspections_df.assign(score_gap_copy=inspections_df['score_gap'] * 2)

    with pytest.raises(ValueError, match="collinear"):
        fit_binary_model(df, 'violation', ['score_gap', 'score_gap_copy'])


# ── Aggregation policies ───────────────────────────────────

def test_row_effects_equal_beta_f_one_minus_f(logit_fit, inspections_df):
    rows = inspections_df.head(10)
    F = predict_probability(logit_fit, rows)

    effects = marginal_effects_by_row(logit_fit, rows, 'score_gap')

    expected = marginal_effect(logit_fit.params['score_gap'], F)
    np.testing.assert_allclose(effects.to_numpy(), expected)


def test_ame_is_mean_of_row_effects(logit_fit, inspections_df):
    rows = inspections_df.head(2)

    ame = average_marginal_effect(logit_fit, rows, 'score_gap')

    assert ame == pytest.approx(marginal_effects_by_row(logit_fit, rows, 'score_gap').mean())


def test_mem_evaluates_at_predictor_means(logit_fit, inspections_df):
    means = inspections_df[['score_gap', 'weekend']].mean()
    xb = (logit_fit.params['Intercept']
          + logit_fit.params['score_gap'] * means['score_gap']
          + logit_fit.params['weekend'] * means['weekend'])
    F = 1 / (1 + np.exp(-xb))

    mem = marginal_effect_at_mean(logit_fit, inspections_df, 'score_gap')

    assert mem == pytest.approx(logit_fit.params['score_gap'] * F * (1 - F))


def test_mer_without_values_equals_mem(logit_fit, inspections_df):
    mer = marginal_effect_at_representative(logit_fit, inspections_df, 'score_gap', at={})

    assert len(mer) == 1
    assert mer['estimate'].iloc[0] == pytest.approx(
        marginal_effect_at_mean(logit_fit, inspections_df, 'score_gap'))


def test_mer_grid_crosses_values(logit_fit, inspections_df):
    mer = marginal_effect_at_representative(
        logit_fit, inspections_df, 'score_gap', at={'weekend': [0, 1], 'score_gap': [-1, 0, 1]})

    assert len(mer) == 6
    # Effect peaks where P is closest to 0.5; with weekend=1 that is score_gap near -0.3
    assert mer.loc[(mer['weekend'] == 1) & (mer['score_gap'] == 0), 'estimate'].iloc[0] > \
        mer.loc[(mer['weekend'] == 1) & (mer['score_gap'] == 1), 'estimate'].iloc[0]


def test_mer_rejects_non_predictor(logit_fit, inspections_df):
    with pytest.raises(ValueError, match="non-predictor"):
        marginal_effect_at_representative(logit_fit, inspections_df, 'score_gap', at={'year': 2012})


def test_effect_for_unknown_term_rejected(logit_fit, inspections_df):
    with pytest.raises(ValueError, match="not a predictor"):
        average_marginal_effect(logit_fit, inspections_df, 'year')


def test_group_ames_average_back_to_overall(logit_fit, inspections_df):
    by_group = average_marginal_effect(logit_fit, inspections_df, 'score_gap', by='weekend')
    sizes = inspections_df['weekend'].value_counts()

    weighted = sum(by_group[g] * sizes[g] for g in by_group.index) / sizes.sum()

    assert set(by_group.index) == {0, 1}
    assert weighted == pytest.approx(average_marginal_effect(logit_fit, inspections_df, 'score_gap'))


# ── Tidy summary ───────────────────────────────────────────

def test_summary_ame_matches_direct_computation(logit_fit, inspections_df):
    table = summarize_marginal_effects(logit_fit, inspections_df, policy='ame')

    assert table['term'].tolist() == ['score_gap', 'weekend']
    assert (table['policy'] == 'ame').all()
    assert table.set_index('term').loc['score_gap', 'estimate'] == pytest.approx(
        average_marginal_effect(logit_fit, inspections_df, 'score_gap'))


def test_summary_has_sensible_uncertainty(logit_fit, inspections_df):
    table = summarize_marginal_effects(logit_fit, inspections_df, policy=Policy.MEM)

    assert (table['std_error'] > 0).all()
    assert (table['conf_low'] < table['estimate']).all()
    assert (table['estimate'] < table['conf_high']).all()
    # Both effects are strongly identified with n=5000
    assert (table['p_value'] < 0.01).all()


def test_summary_by_group_and_at_columns(logit_fit, inspections_df):
    grouped = summarize_marginal_effects(logit_fit, inspections_df, variables=['score_gap'], by='weekend')
    mer = summarize_marginal_effects(logit_fit, inspections_df, variables=['score_gap'],
                                     policy='mer', at={'weekend': [0, 1]})

    assert grouped['weekend'].tolist() == [0, 1]
    assert mer['weekend'].tolist() == [0, 1]
    assert (mer['policy'] == 'mer').all()


@pytest.mark.parametrize("policy", ['mem', 'mer'])
def test_summary_group_by_only_for_ame(logit_fit, inspections_df, policy):
    with pytest.raises(ValueError, match="AME"):
        summarize_marginal_effects(logit_fit, inspections_df, policy=policy, by='weekend')


def test_missing_group_values_form_their_own_group(logit_fit, inspections_df):
    districts = np.resize(np.array(['north', 'south', None], dtype=object), len(inspections_df))
    df = inspections_df.assign(district=districts)

    table = summarize_marginal_effects(logit_fit, df, variables=['score_gap'], by='district')
    by_group = average_marginal_effect(logit_fit, df, 'score_gap', by='district')

    assert len(table) == 3
    assert table['district'].isna().sum() == 1
    assert len(by_group) == 3
    assert by_group.index.isna().sum() == 1


def test_summary_delta_method_matches_closed_form_for_single_row():
    """With one intercept-free predictor at x=1, the MEM standard error has a closed form."""
    rng = np.random.default_rng(7)
    df = pd.DataFrame({'x': rng.normal(0, 1, 800)})
    df['y'] = rng.binomial(1, 1 / (1 + np.exp(-0.7 * df['x'])))
    fit = fit_binary_model(df, 'y', ['x'], add_constant=False)

    table = summarize_marginal_effects(fit, df, policy='mer', at={'x': 1.0})

    b = fit.params['x']
    F = 1 / (1 + np.exp(-b))
    # d/db [b F(b)(1-F(b))] = F(1-F) + b F(1-F)(1-2F)
    grad = F * (1 - F) + b * F * (1 - F) * (1 - 2 * F)
    assert table['std_error'].iloc[0] == pytest.approx(abs(grad) * fit.bse['x'], rel=1e-3)


# ── Representative value parsing ───────────────────────────

def test_parse_at_values():
    assert parse_at_values("weekend=0, 1; score_gap=0.5") == {'weekend': [0.0, 1.0], 'score_gap': [0.5]}
    assert parse_at_values("") == {}


@pytest.mark.parametrize("text", ["weekend", "weekend=", "weekend=abc", "=1"])
def test_parse_at_values_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_at_values(text)
