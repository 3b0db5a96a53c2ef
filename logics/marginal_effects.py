"""
Marginal effects for binary-outcome (logit / probit) models.

In a nonlinear model the effect of a one-unit change in x_j on P(y=1) depends
on where it is evaluated:

    dP/dx_j = beta_j * f(x'beta)

where f is the density of the link (for logit f = F(1 - F)). Three ways of
collapsing those row-level effects into one number are supported:

    - AME: average the per-row effects over the data (mean of effects)
    - MEM: evaluate once at the mean of the predictors
    - MER: evaluate at chosen representative values, other predictors at their means

Standard errors use the delta method with a numerical Jacobian with respect
to the coefficients.
"""

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import List

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype
from scipy import stats
from scipy.optimize import approx_fprime, minimize


INTERCEPT = 'Intercept'
Z_95 = stats.norm.ppf(0.975)


class Link(Enum):
    """Link function of a binary-outcome model."""
    LOGIT = 'logit'
    PROBIT = 'probit'

    def cdf(self, z):
        if self is Link.LOGIT:
            return 1.0 / (1.0 + np.exp(-np.clip(z, -500, 500)))
        return stats.norm.cdf(z)

    def pdf(self, z):
        if self is Link.LOGIT:
            p = self.cdf(z)
            return p * (1.0 - p)
        return stats.norm.pdf(z)

    def pdf_from_probability(self, p):
        """Density at the index that produces probability p."""
        p = np.asarray(p, dtype=float)
        if self is Link.LOGIT:
            return p * (1.0 - p)
        return stats.norm.pdf(stats.norm.ppf(p))


class Policy(Enum):
    """How row-level effects are aggregated."""
    AME = 'ame'     # mean of effects
    MEM = 'mem'     # mean of predictors
    MER = 'mer'     # representative values


@dataclass
class BinaryModelFit:
    """Result of a maximum-likelihood logit / probit fit."""
    link: Link
    outcome: str
    predictors: List[str]
    params: pd.Series
    cov: pd.DataFrame
    log_likelihood: float
    n_obs: int
    converged: bool
    add_constant: bool = True

    @property
    def bse(self):
        return pd.Series(np.sqrt(np.diag(self.cov.to_numpy())), index=self.params.index)

    def summary_frame(self):
        """Coefficient table: coef, std_error, z, p_value."""
        z = self.params / self.bse
        return pd.DataFrame({
            'term': self.params.index,
            'coef': self.params.to_numpy(),
            'std_error': self.bse.to_numpy(),
            'z': z.to_numpy(),
            'p_value': 2 * stats.norm.sf(np.abs(z.to_numpy())),
        })


def marginal_effect(beta, probability, link='logit'):
    """
    Closed-form marginal effect from a coefficient and a predicted probability.

    For logit this is ``beta * F * (1 - F)``.
    """
    return beta * Link(link).pdf_from_probability(probability)


def _design_matrix(df, predictors, add_constant=True):
    X = df[list(predictors)].astype(float)
    if add_constant:
        X.insert(0, INTERCEPT, 1.0)
    return X


def _check_columns(df, columns):
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Column(s) not found: {', '.join(map(str, missing))}")


def fit_binary_model(df, outcome, predictors, link='logit', add_constant=True):
    """
    Fit a logit or probit model by maximum likelihood.

    Rows with a missing outcome or predictor are dropped (listwise deletion).
    The covariance matrix is the inverse Fisher information at the estimate.

    Args:
        df: DataFrame holding the outcome and predictors.
        outcome: name of the 0/1 outcome column.
        predictors: list of numeric predictor columns.
        link: 'logit' or 'probit'.
        add_constant: prepend an intercept term.

    Returns:
        BinaryModelFit

    Raises:
        ValueError: On missing columns, a non-binary outcome, non-numeric
            predictors, collinear predictors, or no complete rows.
    """
    link = Link(link)
    predictors = list(predictors)
    if not predictors:
        raise ValueError("Select at least one predictor.")
    if outcome in predictors:
        raise ValueError(f"Outcome '{outcome}' cannot also be a predictor.")
    _check_columns(df, [outcome] + predictors)

    data = pd.DataFrame(df[[outcome] + predictors]).dropna()
    dropped = len(df) - len(data)
    if dropped:
        print(f"[FIT] Dropped {dropped} row(s) with missing values (listwise deletion)")
    if data.empty:
        raise ValueError("No complete rows left to fit the model.")

    for col in [outcome] + predictors:
        if not is_numeric_dtype(data[col]):
            raise ValueError(f"Column '{col}' is not numeric.")

    y = data[outcome].astype(float).to_numpy()
    if not np.isin(y, (0.0, 1.0)).all():
        raise ValueError(f"Outcome '{outcome}' must be coded 0/1.")
    if y.min() == y.max():
        raise ValueError(f"Outcome '{outcome}' has no variation.")

    X = _design_matrix(data, predictors, add_constant)
    Xv = X.to_numpy()
    if np.linalg.matrix_rank(Xv) < Xv.shape[1]:
        raise ValueError("Predictors are perfectly collinear; drop one of them.")

    def neg_log_likelihood(b):
        p = np.clip(link.cdf(Xv @ b), 1e-12, 1 - 1e-12)
        return -np.sum(y * np.log(p) + (1 - y) * np.log(1 - p))

    def gradient(b):
        z = Xv @ b
        if link is Link.LOGIT:
            return Xv.T @ (link.cdf(z) - y)
        p = np.clip(link.cdf(z), 1e-12, 1 - 1e-12)
        return -Xv.T @ (link.pdf(z) * (y - p) / (p * (1 - p)))

    print(f"[FIT] {link.value}: {outcome} ~ {' + '.join(predictors)} (n={len(y)})")
    res = minimize(neg_log_likelihood, np.zeros(Xv.shape[1]), jac=gradient,
                   method='BFGS', options={'maxiter': 2000, 'gtol': 1e-6})

    # BFGS can stop on "precision loss" right at the optimum; accept a vanishing mean score
    converged = bool(res.success or np.max(np.abs(gradient(res.x))) / len(y) < 1e-6)
    if not converged:
        print(f"[WARN] {link.value} fit did not converge: {res.message}")

    z = Xv @ res.x
    p = np.clip(link.cdf(z), 1e-12, 1 - 1e-12)
    if link is Link.LOGIT:
        w = p * (1 - p)
    else:
        w = link.pdf(z) ** 2 / (p * (1 - p))
    cov = np.linalg.inv(Xv.T @ (Xv * w[:, None]))

    names = list(X.columns)
    return BinaryModelFit(
        link=link,
        outcome=outcome,
        predictors=predictors,
        params=pd.Series(res.x, index=names),
        cov=pd.DataFrame(cov, index=names, columns=names),
        log_likelihood=-float(res.fun),
        n_obs=len(y),
        converged=converged,
        add_constant=add_constant,
    )


def predict_probability(fit, df):
    """Predicted P(y=1) for every row of df."""
    X = _design_matrix(df, fit.predictors, fit.add_constant)
    return pd.Series(fit.link.cdf(X.to_numpy() @ fit.params.to_numpy()),
                     index=df.index, name='probability')


def _term_index(fit, variable):
    if variable not in fit.predictors:
        raise ValueError(f"'{variable}' is not a predictor in the fitted model.")
    return list(fit.params.index).index(variable)


def marginal_effects_by_row(fit, df, variable):
    """Per-row effect ``beta_j * f(x'beta)`` of `variable` on P(y=1)."""
    j = _term_index(fit, variable)
    X = _design_matrix(df, fit.predictors, fit.add_constant).to_numpy()
    b = fit.params.to_numpy()
    return pd.Series(b[j] * fit.link.pdf(X @ b), index=df.index, name=f"dydx_{variable}")


def average_marginal_effect(fit, df, variable, by=None):
    """
    Average marginal effect: the mean of the per-row effects.

    With `by` (a column or list of columns) the mean is taken within each group
    and a Series indexed by group is returned.
    """
    effects = marginal_effects_by_row(fit, df, variable)
    if by is None:
        return float(effects.mean())
    return df.assign(_dydx=effects).groupby(by, dropna=False)['_dydx'].mean().rename(effects.name)


def marginal_effect_at_mean(fit, df, variable):
    """Marginal effect evaluated at the mean of every predictor."""
    j = _term_index(fit, variable)
    X = _design_matrix(df, fit.predictors, fit.add_constant).dropna()
    xbar = X.mean().to_numpy()
    b = fit.params.to_numpy()
    return float(b[j] * fit.link.pdf(xbar @ b))


def parse_at_values(text):
    """
    Parse representative values typed as ``x=1, 2; z=0.5`` into ``{'x': [1.0, 2.0], 'z': [0.5]}``.

    Raises:
        ValueError: On a clause without '=' or a non-numeric value.
    """
    at = {}
    for clause in filter(None, (c.strip() for c in text.split(';'))):
        name, sep, values = clause.partition('=')
        if not sep or not name.strip():
            raise ValueError(f"Expected 'name=value[, value...]', got '{clause}'")
        try:
            at[name.strip()] = [float(v) for v in values.split(',') if v.strip()]
        except ValueError:
            raise ValueError(f"Non-numeric value in '{clause}'") from None
        if not at[name.strip()]:
            raise ValueError(f"No value given for '{name.strip()}'")
    return at


def _datagrid(fit, df, at):
    """Cartesian grid over `at` values; predictors not named are held at their means."""
    at = at or {}
    unknown = [k for k in at if k not in fit.predictors]
    if unknown:
        raise ValueError(f"Representative values given for non-predictor(s): {', '.join(unknown)}")

    means = df[fit.predictors].astype(float).dropna().mean()
    keys = list(at)
    values = [list(v) if isinstance(v, (list, tuple, np.ndarray, pd.Series)) else [v] for v in at.values()]

    rows = []
    for combo in itertools.product(*values):
        row = means.to_dict()
        row.update(zip(keys, combo))
        rows.append(row)
    return pd.DataFrame(rows, columns=fit.predictors)


def marginal_effect_at_representative(fit, df, variable, at):
    """
    Marginal effect at representative values.

    Args:
        at: dict predictor -> value or list of values. Lists are crossed into a
            grid; predictors not in `at` are held at their sample means.

    Returns:
        DataFrame: one row per grid point with the predictor values and 'estimate'.
    """
    j = _term_index(fit, variable)
    grid = _datagrid(fit, df, at)
    X = _design_matrix(grid, fit.predictors, fit.add_constant).to_numpy()
    b = fit.params.to_numpy()
    return grid.assign(estimate=b[j] * fit.link.pdf(X @ b))


def _delta_method(func, params, cov):
    """Estimate and delta-method standard error of a scalar function of the coefficients."""
    estimate = float(func(params))
    jac = approx_fprime(params, func)
    variance = float(jac @ cov @ jac)
    return estimate, np.sqrt(max(variance, 0.0))


def _effect_row(term, policy, estimate, std_error, extra=None):
    z = estimate / std_error if std_error > 0 else np.nan
    row = {'term': term, 'policy': policy.value}
    row.update(extra or {})
    row.update({
        'estimate': estimate,
        'std_error': std_error,
        'z': z,
        'p_value': 2 * stats.norm.sf(abs(z)) if np.isfinite(z) else np.nan,
        'conf_low': estimate - Z_95 * std_error,
        'conf_high': estimate + Z_95 * std_error,
    })
    return row


def summarize_marginal_effects(fit, df, variables=None, policy='ame', at=None, by=None):
    """
    Tidy marginal-effects table, one row per term (and per group / grid point).

    Args:
        fit: BinaryModelFit
        df: data the effects are evaluated on (usually the estimation data).
        variables: terms to report; None means every predictor.
        policy: 'ame', 'mem' or 'mer'.
        at: representative values for 'mer' (see marginal_effect_at_representative).
        by: group column(s) for 'ame'; rows with a missing group value form their own group.

    Returns:
        DataFrame with columns term, policy, [group / at columns], estimate,
        std_error, z, p_value, conf_low, conf_high.
    """
    policy = Policy(policy)
    variables = list(variables) if variables else list(fit.predictors)
    params = fit.params.to_numpy()
    cov = fit.cov.to_numpy()
    pdf = fit.link.pdf

    X = _design_matrix(df, fit.predictors, fit.add_constant).dropna()
    by_cols = [by] if isinstance(by, str) else list(by or [])
    if by_cols and policy is not Policy.AME:
        raise ValueError(f"Group-by is only supported for the AME policy, not '{policy.value}'.")
    if by_cols:
        _check_columns(df, by_cols)

    rows = []
    for var in variables:
        j = _term_index(fit, var)

        if policy is Policy.AME:
            if not by_cols:
                groups = [((), X)]
            elif len(by_cols) == 1:
                groups = [((key,), g) for key, g in X.groupby(df.loc[X.index, by_cols[0]], dropna=False)]
            else:
                groups = list(X.groupby([df.loc[X.index, c] for c in by_cols], dropna=False))

            for key, Xg in groups:
                Xm = Xg.to_numpy()
                est, se = _delta_method(lambda b: np.mean(b[j] * pdf(Xm @ b)), params, cov)
                rows.append(_effect_row(var, policy, est, se, dict(zip(by_cols, key))))

        elif policy is Policy.MEM:
            xbar = X.mean().to_numpy()
            est, se = _delta_method(lambda b: b[j] * pdf(xbar @ b), params, cov)
            rows.append(_effect_row(var, policy, est, se))

        else:
            grid = _datagrid(fit, df, at)
            Xg = _design_matrix(grid, fit.predictors, fit.add_constant).to_numpy()
            for i in range(len(grid)):
                x = Xg[i]
                est, se = _delta_method(lambda b: b[j] * pdf(x @ b), params, cov)
                extra = {k: grid.iloc[i][k] for k in (at or {})}
                rows.append(_effect_row(var, policy, est, se, extra))

    print(f"[MFX] {policy.value.upper()} for {', '.join(variables)}: {len(rows)} row(s)")
    return pd.DataFrame(rows)
