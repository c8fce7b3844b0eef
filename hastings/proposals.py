"""Proposal distributions for Metropolis-Hastings transitions."""

from abc import ABC, abstractmethod
from math import exp, inf, log
import numpy as np
from scipy import stats
from hastings.errors import ConfigurationError
from hastings.utils import as_state_array, check_dimension, check_positive


class Proposal(ABC):
    r"""Base class for proposal distributions.

    A proposal defines a conditional distribution \(g(\cdot \mid x)\) used to
    generate a candidate next state from the current state \(x\). Symmetric
    proposals, with \(g(a \mid b) = g(b \mid a)\) for all \(a, b\), declare
    this with `is_symmetric = True` and do not require a Hastings correction.
    Asymmetric proposals must implement `density` (and optionally a more
    numerically stable `log_density`).
    """

    is_symmetric = False

    @abstractmethod
    def draw(self, pos, rng):
        """Draw a proposed position conditioned on the current position.

        Args:
            pos (array): Current position.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            array: Proposed position with same shape as `pos`.
        """

    def density(self, pos_to, pos_from):
        """Proposal density `g(pos_to | pos_from)`."""
        if self.is_symmetric:
            raise NotImplementedError(
                f'{type(self).__name__} is symmetric and does not define a '
                f'proposal density.')
        if type(self).log_density is Proposal.log_density:
            raise NotImplementedError(
                f'{type(self).__name__} is asymmetric so must define at least '
                f'one of density and log_density.')
        return exp(self.log_density(pos_to, pos_from))

    def log_density(self, pos_to, pos_from):
        """Logarithm of proposal density `g(pos_to | pos_from)`."""
        val = self.density(pos_to, pos_from)
        return log(val) if val > 0 else -inf

    def correction(self, pos_curr, pos_prop):
        """Hastings correction `g(curr | prop) / g(prop | curr)`.

        Exactly one for symmetric proposals.
        """
        if self.is_symmetric:
            return 1.
        dens_rev = self.density(pos_curr, pos_prop)
        dens_fwd = self.density(pos_prop, pos_curr)
        return inf if dens_fwd == 0 else dens_rev / dens_fwd

    def log_correction(self, pos_curr, pos_prop):
        """Logarithm of Hastings correction factor."""
        if self.is_symmetric:
            return 0.
        log_dens_fwd = self.log_density(pos_prop, pos_curr)
        if log_dens_fwd == -inf:
            return inf
        return self.log_density(pos_curr, pos_prop) - log_dens_fwd

    def check_dimension(self, dim):
        """Check proposal is compatible with states of a given dimension.

        Args:
            dim (int): State dimension.
        """


class GaussianRandomWalkProposal(Proposal):
    r"""Gaussian random walk proposal.

    Proposes \(x' = x + L z\) where \(z\) is a vector of independent
    standard normal variates and \(L L^T = \Sigma\) is the proposal
    covariance. Symmetric so no Hastings correction is needed.

    The scale controls how far proposals move: too small a scale gives a high
    acceptance rate but slow random-walk exploration, too large a scale gives
    frequent rejections.
    """

    is_symmetric = True

    def __init__(self, scale=1.):
        """
        Args:
            scale (float or array): Either a positive scalar standard
                deviation used for all dimensions, a one-dimensional array of
                positive per-dimension standard deviations or a
                two-dimensional positive definite covariance matrix.
        """
        scale = np.asarray(scale, dtype=np.float64)
        if scale.ndim <= 1:
            self.scale = check_positive(scale, 'scale')
            self._chol = None
        elif scale.ndim == 2:
            if scale.shape[0] != scale.shape[1] or not np.allclose(
                    scale, scale.T):
                raise ConfigurationError(
                    'Proposal covariance must be a symmetric square matrix.')
            try:
                self._chol = np.linalg.cholesky(scale)
            except np.linalg.LinAlgError as e:
                raise ConfigurationError(
                    'Proposal covariance must be positive definite.') from e
            self.scale = scale
        else:
            raise ConfigurationError(
                'scale must be a scalar, a one-dimensional array of standard '
                'deviations or a two-dimensional covariance matrix.')

    def draw(self, pos, rng):
        noise = rng.standard_normal(pos.shape)
        if self._chol is None:
            return pos + self.scale * noise
        return pos + self._chol @ noise

    def check_dimension(self, dim):
        if self._chol is None:
            check_dimension(self.scale, dim, 'scale')
        elif self._chol.shape[0] != dim:
            raise ConfigurationError(
                f'Proposal covariance has shape {self._chol.shape} but state '
                f'dimension is {dim}.')


class UniformRandomWalkProposal(Proposal):
    """Uniform random walk proposal on a box centred at the current position.

    Symmetric so no Hastings correction is needed.
    """

    is_symmetric = True

    def __init__(self, half_width=1.):
        """
        Args:
            half_width (float or array): Positive scalar or per-dimension
                half-widths of the box proposals are drawn from.
        """
        self.half_width = check_positive(half_width, 'half_width')

    def draw(self, pos, rng):
        return pos + rng.uniform(-self.half_width, self.half_width, pos.shape)

    def check_dimension(self, dim):
        check_dimension(self.half_width, dim, 'half_width')


class IndependentGaussianProposal(Proposal):
    """Independence proposal drawing from a fixed Gaussian distribution.

    Proposals do not depend on the current position, so the proposal is
    asymmetric and a Hastings correction is applied.
    """

    def __init__(self, mean, cov=1.):
        """
        Args:
            mean (float or array): Mean of proposal distribution.
            cov (float or array): Scalar variance, one-dimensional array of
                per-dimension variances or two-dimensional covariance matrix.
        """
        self.mean = as_state_array(mean)
        cov = np.asarray(cov, dtype=np.float64)
        if cov.ndim < 2:
            cov = check_positive(cov, 'cov')
            cov = np.diag(np.broadcast_to(cov, self.mean.shape))
        try:
            self._dist = stats.multivariate_normal(self.mean, cov)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ConfigurationError(
                f'Invalid proposal covariance: {e}') from e

    def draw(self, pos, rng):
        return np.reshape(self._dist.rvs(random_state=rng), pos.shape)

    def density(self, pos_to, pos_from):
        return float(self._dist.pdf(pos_to))

    def log_density(self, pos_to, pos_from):
        return float(self._dist.logpdf(pos_to))

    def check_dimension(self, dim):
        if self.mean.shape[0] != dim:
            raise ConfigurationError(
                f'Proposal mean has {self.mean.shape[0]} entries but state '
                f'dimension is {dim}.')


class LogNormalRandomWalkProposal(Proposal):
    r"""Multiplicative log-normal random walk proposal for positive states.

    Proposes \(x'_i = x_i \exp(\sigma_i z_i)\) with \(z_i\) independent
    standard normal variates. The proposal is asymmetric with Hastings
    correction \(\prod_i x'_i / x_i\).
    """

    def __init__(self, scale=1.):
        """
        Args:
            scale (float or array): Positive scalar or per-dimension standard
                deviations of the log-scale increments.
        """
        self.scale = check_positive(scale, 'scale')

    def draw(self, pos, rng):
        return pos * np.exp(self.scale * rng.standard_normal(pos.shape))

    def density(self, pos_to, pos_from):
        if np.any(np.asarray(pos_from) <= 0):
            return 0.
        return float(np.prod(
            stats.lognorm.pdf(pos_to, s=self.scale, scale=pos_from)))

    def log_density(self, pos_to, pos_from):
        if np.any(np.asarray(pos_from) <= 0):
            return -inf
        return float(np.sum(
            stats.lognorm.logpdf(pos_to, s=self.scale, scale=pos_from)))

    def check_dimension(self, dim):
        check_dimension(self.scale, dim, 'scale')


class FunctionProposal(Proposal):
    """Proposal defined by user supplied functions."""

    def __init__(self, draw, density=None, symmetric=None):
        """
        Args:
            draw (Callable[[array, numpy.random.Generator], array]): Function
                which given the current position and a random number
                generator returns a proposed position.
            density (None or Callable[[array, array], float]): Function which
                given positions `a` and `b` returns the proposal density
                `g(a | b)`. Required for asymmetric proposals.
            symmetric (None or bool): Whether the proposal is symmetric. If
                `None` (the default) the proposal is assumed symmetric if and
                only if no `density` function is given.
        """
        if symmetric is None:
            symmetric = density is None
        if not symmetric and density is None:
            raise ConfigurationError(
                'Asymmetric proposals require a density function.')
        self._draw = draw
        self._density = density
        self.is_symmetric = symmetric

    def draw(self, pos, rng):
        return as_state_array(self._draw(pos, rng)).reshape(pos.shape)

    def density(self, pos_to, pos_from):
        if self._density is None:
            return super().density(pos_to, pos_from)
        return float(self._density(pos_to, pos_from))
