"""Convergence diagnostics for multiple independent chains."""

from collections import namedtuple
import numpy as np
from hastings.chains import MultiChainResult
from hastings.errors import ConfigurationError, DegenerateChainError


DiagnosticSummary = namedtuple(
    'DiagnosticSummary',
    ['within_chain_var', 'between_chain_var', 'pooled_var', 'r_hat', 'n_eff'])
DiagnosticSummary.__doc__ = """Gelman-Rubin diagnostic quantities.

Each attribute is an array with one entry per state dimension.

Attributes:
    within_chain_var (array): Mean of per-chain sample variances `W`.
    between_chain_var (array): Between-chain variance estimate `B`.
    pooled_var (array): Pooled posterior variance estimate.
    r_hat (array): Potential scale reduction factor.
    n_eff (array): Effective sample size estimate, `inf` where `B = 0`.
"""


def _as_chain_array(chains, burn_in):
    """Convert chains to a `(n_chain, n_sample, dim)` array and trim them."""
    if isinstance(chains, MultiChainResult):
        if len(chains.completed) == 0:
            raise ConfigurationError('No completed chains to diagnose.')
        return chains.positions(burn_in)
    array = np.asarray(chains, dtype=np.float64)
    if array.ndim == 2:
        array = array[:, :, None]
    elif array.ndim != 3:
        raise ConfigurationError(
            f'Chains array must have shape (n_chain, n_sample) or (n_chain, '
            f'n_sample, dim), got {array.shape}.')
    if burn_in < 0 or burn_in >= array.shape[1]:
        raise ConfigurationError(
            f'burn_in must be in [0, {array.shape[1]}), got {burn_in}.')
    return array[:, burn_in:]


def summarize(chains, burn_in=0):
    r"""Compute Gelman-Rubin convergence diagnostics [1].

    For \(m\) chains of length \(n\) with means \(\bar{x}_i\), grand mean
    \(\bar{x}\) and sample variances \(s^2_i\), computes per dimension

    \[ W = \frac{1}{m} \sum_i s^2_i, \quad
       B = \frac{n}{m - 1} \sum_i (\bar{x}_i - \bar{x})^2, \]

    \[ \hat{\sigma}^2 = \frac{n - 1}{n} W + \frac{1}{n} B, \quad
       \hat{R} = \sqrt{\hat{\sigma}^2 / W}, \quad
       n_{\mathrm{eff}} = m n \hat{\sigma}^2 / B. \]

    Where all chain means are identical (\(B = 0\)) the R-hat value is
    exactly one and the effective sample size is infinite.

    Args:
        chains (MultiChainResult or array): Either a result whose completed
            chains are used, or an array of shape `(n_chain, n_sample)` or
            `(n_chain, n_sample, dim)`.
        burn_in (int): Number of initial states to discard from each chain
            before computing the diagnostics.

    Returns:
        DiagnosticSummary: Diagnostic quantities per dimension.

    Raises:
        ConfigurationError: If there are fewer than two chains or two samples
            per chain after trimming.
        DegenerateChainError: If the within-chain variance `W` is zero in
            some dimension, in which case R-hat is undefined. A single
            stuck chain among moving chains gives a large R-hat instead.

    References:

      1. Gelman, A. and Rubin, D.B., 1992. Inference from iterative
         simulation using multiple sequences. Statistical Science, 7(4),
         pp.457-472.
    """
    array = _as_chain_array(chains, burn_in)
    m, n = array.shape[:2]
    if m < 2:
        raise ConfigurationError(
            f'At least two chains are required, got {m}.')
    if n < 2:
        raise ConfigurationError(
            f'At least two samples per chain are required, got {n}.')
    chain_means = array.mean(axis=1)
    chain_vars = array.var(axis=1, ddof=1)
    within_chain_var = chain_vars.mean(axis=0)
    zero_var = within_chain_var == 0
    if np.any(zero_var):
        raise DegenerateChainError(
            f'All chains have zero variance in dimension(s) '
            f'{np.flatnonzero(zero_var).tolist()}: R-hat is undefined.')
    between_chain_var = n / (m - 1) * np.sum(
        (chain_means - chain_means.mean(axis=0)) ** 2, axis=0)
    # Identical chain means give an exactly zero B irrespective of rounding
    identical_means = np.all(chain_means == chain_means[0], axis=0)
    between_chain_var[identical_means] = 0.
    pooled_var = (n - 1) / n * within_chain_var + between_chain_var / n
    r_hat = np.sqrt(pooled_var / within_chain_var)
    r_hat[identical_means] = 1.
    n_eff = np.full_like(pooled_var, np.inf)
    n_eff[~identical_means] = (
        m * n * pooled_var[~identical_means] /
        between_chain_var[~identical_means])
    return DiagnosticSummary(
        within_chain_var, between_chain_var, pooled_var, r_hat, n_eff)


def gelman_rubin(chains, burn_in=0):
    """Gelman-Rubin potential scale reduction factor (R-hat) per dimension.

    See `summarize` for details.
    """
    return summarize(chains, burn_in).r_hat


def effective_sample_size(chains, burn_in=0):
    """Between-chain effective sample size estimate per dimension.

    See `summarize` for details.
    """
    return summarize(chains, burn_in).n_eff
