"""
Multinomial Logit (MNL) choice model.

Each choice task offers J alternatives with attribute vectors x_j. Under the
MNL model the utility of alternative j is linear in the attributes,

    u_j = x_j · β

and the probability of choosing j is the softmax of the utilities,

    P(j) = exp(u_j) / Σ_k exp(u_k)

The log-likelihood of a dataset is the sum over tasks of the log-probability of
the alternative that was actually chosen. Utilities are shifted by their
per-task maximum before exponentiating; softmax is invariant to that shift, so
the probabilities are unchanged while overflow is avoided.

Maximum-likelihood estimates are found with BFGS. Standard errors come from
the inverse Hessian of the negative log-likelihood at the optimum, either the
exact (analytic) Hessian or BFGS's running approximation.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from ..config import get_settings
from ..data import ChoiceData
from ..exceptions import ConfigurationError, FittingError

logger = logging.getLogger(__name__)


# =============================================================================
# LIKELIHOOD
# =============================================================================

def _check_beta(beta, data: ChoiceData) -> np.ndarray:
    beta = np.asarray(beta, dtype=float)
    if beta.shape != (data.n_features,):
        raise ConfigurationError(
            f"beta must have shape ({data.n_features},), got {beta.shape}"
        )
    return beta


def mnl_log_probabilities(beta, data: ChoiceData) -> np.ndarray:
    """
    Log choice probabilities for every alternative of every task.

    Returns:
        (n_tasks, n_alternatives) matrix; each row log-sum-exps to 0
    """
    beta = _check_beta(beta, data)
    utility = data.X @ beta                                  # (n_tasks, J)
    utility = utility - utility.max(axis=1, keepdims=True)
    return utility - np.log(np.exp(utility).sum(axis=1, keepdims=True))


def mnl_choice_probabilities(beta, data: ChoiceData) -> np.ndarray:
    """(n_tasks, n_alternatives) choice probabilities; rows sum to 1."""
    return np.exp(mnl_log_probabilities(beta, data))


def mnl_log_likelihood(beta, data: ChoiceData) -> float:
    """
    Total MNL log-likelihood: Σ_tasks log P(chosen alternative).

    Args:
        beta: (n_features,) coefficient vector
        data: Validated choice tasks

    Returns:
        Log-likelihood (always <= 0)
    """
    log_probs = mnl_log_probabilities(beta, data)
    return float(log_probs[np.arange(data.n_tasks), data.chosen].sum())


def mnl_neg_log_likelihood(beta, data: ChoiceData) -> float:
    """Negative log-likelihood, the objective minimized by ``fit_mnl_mle``."""
    return -mnl_log_likelihood(beta, data)


def mnl_gradient(beta, data: ChoiceData) -> np.ndarray:
    """
    Gradient of the negative log-likelihood.

    For each task the log-likelihood gradient is the chosen attribute vector
    minus the probability-weighted mean attribute vector.
    """
    probs = mnl_choice_probabilities(beta, data)                # (T, J)
    x_chosen = data.X[np.arange(data.n_tasks), data.chosen]     # (T, p)
    x_mean = np.einsum("tj,tjp->tp", probs, data.X)             # (T, p)
    return -(x_chosen - x_mean).sum(axis=0)


def mnl_hessian(beta, data: ChoiceData) -> np.ndarray:
    """
    Hessian of the negative log-likelihood.

        H = Σ_t Σ_j P_tj (x_tj - x̄_t)(x_tj - x̄_t)ᵀ

    which is positive semi-definite and does not depend on the observed
    choices.
    """
    probs = mnl_choice_probabilities(beta, data)
    x_mean = np.einsum("tj,tjp->tp", probs, data.X)
    centered = data.X - x_mean[:, None, :]
    return np.einsum("tj,tjp,tjq->pq", probs, centered, centered)


# =============================================================================
# MAXIMUM LIKELIHOOD
# =============================================================================

@dataclass
class MLEResult:
    """Maximum-likelihood fit of an MNL model."""
    estimates: np.ndarray
    std_errors: np.ndarray
    ci_lower: np.ndarray
    ci_upper: np.ndarray
    log_likelihood: float
    converged: bool
    message: str
    n_iter: int
    param_names: tuple
    hessian: Optional[np.ndarray] = None
    covariance: Optional[np.ndarray] = None
    warnings: list = field(default_factory=list)

    def summary(self) -> pd.DataFrame:
        """Per-parameter estimate, standard error and 95% interval."""
        return pd.DataFrame({
            'estimate': self.estimates,
            'std_error': self.std_errors,
            'ci_lower': self.ci_lower,
            'ci_upper': self.ci_upper,
        }, index=pd.Index(self.param_names, name='parameter'))

    def raise_for_status(self) -> "MLEResult":
        """Raise ``FittingError`` if the fit is unusable, else return self."""
        if not self.converged:
            raise FittingError(f"MNL optimizer did not converge: {self.message}")
        if not np.all(np.isfinite(self.std_errors)):
            raise FittingError("Standard errors are undefined: " + "; ".join(self.warnings))
        return self


def standard_errors_from_hessian(hessian: np.ndarray):
    """
    Covariance and standard errors from a Hessian of the negative log-likelihood.

    Returns:
        Tuple of (covariance, std_errors). Both are NaN-filled when the Hessian
        is singular or its inverse has a non-positive diagonal.
    """
    p = hessian.shape[0]
    nan_cov = np.full((p, p), np.nan)
    if not np.all(np.isfinite(hessian)) or np.linalg.matrix_rank(hessian) < p:
        return nan_cov, np.full(p, np.nan)
    try:
        covariance = np.linalg.inv(hessian)
    except np.linalg.LinAlgError:
        return nan_cov, np.full(p, np.nan)

    variances = np.diag(covariance)
    std_errors = np.where(variances > 0, np.sqrt(np.abs(variances)), np.nan)
    return covariance, std_errors


def fit_mnl_mle(data: ChoiceData, initial=None, hessian: str = "analytic",
                z: Optional[float] = None, max_iter: Optional[int] = None) -> MLEResult:
    """
    Fit the MNL model by maximum likelihood.

    Args:
        data: Validated choice tasks
        initial: Starting coefficients (default: zeros)
        hessian: ``"analytic"`` for the exact Hessian at the optimum, or
                 ``"bfgs"`` to reuse the optimizer's inverse-Hessian estimate
        z: Critical value for the confidence interval (default: 1.96)
        max_iter: Optional cap on BFGS iterations

    Returns:
        MLEResult. Optimizer failure or a singular Hessian doesn't raise:
        ``converged`` is False and/or the standard errors are NaN, and
        ``raise_for_status()`` turns that into a ``FittingError``.

    Raises:
        ConfigurationError: If ``initial`` has the wrong length or ``hessian``
            is not a known method
    """
    if hessian not in ("analytic", "bfgs"):
        raise ConfigurationError(f"hessian must be 'analytic' or 'bfgs', got {hessian!r}")
    if z is None:
        z = get_settings().ci_level_z

    x0 = np.zeros(data.n_features) if initial is None else _check_beta(initial, data)
    options = {} if max_iter is None else {'maxiter': max_iter}

    result = minimize(
        mnl_neg_log_likelihood,
        x0,
        args=(data,),
        jac=mnl_gradient,
        method="BFGS",
        options=options,
    )

    # BFGS can stop on a line-search precision loss right at the optimum;
    # a vanishing gradient still counts as converged
    converged = bool(result.success) or bool(np.max(np.abs(result.jac)) < 1e-4)

    notes = []
    if not converged:
        logger.warning(f"MNL optimizer did not converge: {result.message}")
        notes.append(str(result.message))

    if hessian == "analytic":
        H = mnl_hessian(result.x, data)
        covariance, std_errors = standard_errors_from_hessian(H)
    else:
        covariance = np.asarray(result.hess_inv, dtype=float)
        H = None
        variances = np.diag(covariance)
        std_errors = np.where(variances > 0, np.sqrt(np.abs(variances)), np.nan)

    if not np.all(np.isfinite(std_errors)):
        logger.warning("Hessian is not invertible at the optimum; standard errors set to NaN")
        notes.append("Hessian is not invertible at the optimum")

    estimates = np.asarray(result.x, dtype=float)
    return MLEResult(
        estimates=estimates,
        std_errors=std_errors,
        ci_lower=estimates - z * std_errors,
        ci_upper=estimates + z * std_errors,
        log_likelihood=-float(result.fun),
        converged=converged,
        message=str(result.message),
        n_iter=int(result.nit),
        param_names=tuple(data.feature_names),
        hessian=H,
        covariance=covariance,
        warnings=notes,
    )
