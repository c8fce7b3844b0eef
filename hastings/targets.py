"""Adapters wrapping target densities and their gradients."""

from math import exp, inf, log
import numpy as np
from hastings.errors import ConfigurationError, NumericEvaluationError
from hastings.utils import to_scalar


def _exp_or_inf(val):
    """Exponential which saturates to `inf` rather than overflowing."""
    try:
        return exp(val)
    except OverflowError:
        return inf


class Target(object):
    r"""Unnormalized target distribution on a real vector space.

    The target can be specified either by a density function \(f\) or by a
    log density function \(\log f\), with normalizing constants irrelevant as
    samplers only ever use ratios of densities. Points outside the support of
    the distribution should evaluate to zero density (or negative infinity log
    density) rather than raising an exception.

    Optionally a function computing the gradient of the negative log density,
    \(\nabla(-\log f)\), can be provided. This is required by the Hamiltonian
    Monte Carlo samplers.
    """

    def __init__(self, dens=None, log_dens=None, grad_neg_log_dens=None):
        """
        Args:
            dens (None or Callable[[array], float]): Function which given a
                position array returns a non-negative (unnormalized) density.
            log_dens (None or Callable[[array], float]): Function which given
                a position array returns the logarithm of an unnormalized
                density, or `-inf` outside the support. Exactly one of `dens`
                and `log_dens` must be specified.
            grad_neg_log_dens (None or Callable[[array], array]): Function
                which given a position array returns the gradient of the
                negative log density with respect to the position.
        """
        if (dens is None) == (log_dens is None):
            raise ConfigurationError(
                'Exactly one of dens and log_dens must be specified.')
        self._dens = dens
        self._log_dens = log_dens
        self._grad_neg_log_dens = grad_neg_log_dens

    @property
    def log_form(self):
        """Whether the target was specified by a log density function."""
        return self._log_dens is not None

    @property
    def has_gradient(self):
        """Whether a gradient function is available."""
        return self._grad_neg_log_dens is not None

    def evaluate(self, pos):
        """Unnormalized density at a position.

        Args:
            pos (array): Position to evaluate density at.

        Returns:
            float: Non-negative density value.
        """
        if self.log_form:
            val = _exp_or_inf(self.log_evaluate(pos))
            if val == inf:
                raise NumericEvaluationError(
                    f'Target density overflowed at {pos}.')
            return val
        val = to_scalar(self._dens(pos), 'Target density')
        if np.isnan(val) or val < 0 or val == inf:
            raise NumericEvaluationError(
                f'Target density evaluated to {val} at {pos}.')
        return val

    def log_evaluate(self, pos):
        """Logarithm of unnormalized density at a position.

        Args:
            pos (array): Position to evaluate log density at.

        Returns:
            float: Log density value, `-inf` outside support.
        """
        if not self.log_form:
            val = self.evaluate(pos)
            return log(val) if val > 0 else -inf
        val = to_scalar(self._log_dens(pos), 'Target log density')
        if np.isnan(val) or val == inf:
            raise NumericEvaluationError(
                f'Target log density evaluated to {val} at {pos}.')
        return val

    def neg_log_evaluate(self, pos):
        """Negative logarithm of unnormalized density (potential energy)."""
        return -self.log_evaluate(pos)

    def gradient(self, pos):
        """Gradient of negative log density with respect to position.

        Args:
            pos (array): Position to evaluate gradient at.

        Returns:
            array: Gradient array with same shape as `pos`.
        """
        if self._grad_neg_log_dens is None:
            raise ConfigurationError(
                'Target has no grad_neg_log_dens function defined.')
        grad = np.asarray(self._grad_neg_log_dens(pos), dtype=np.float64)
        if grad.shape != np.shape(pos):
            if grad.size == np.size(pos):
                grad = grad.reshape(np.shape(pos))
            else:
                raise ConfigurationError(
                    f'Gradient shape {grad.shape} does not match position '
                    f'shape {np.shape(pos)}.')
        if not np.all(np.isfinite(grad)):
            raise NumericEvaluationError(
                f'Gradient of negative log density evaluated to {grad} at '
                f'{pos}.')
        return grad

    def ratio(self, pos_num, pos_den, val_num=None, val_den=None):
        """Ratio of target densities `f(pos_num) / f(pos_den)`.

        The ratio is computed in the form the target was specified in: density
        targets divide the density values directly and log density targets
        exponentiate the difference of log densities. A zero denominator gives
        a ratio of `inf`.

        Args:
            pos_num (array): Position for numerator.
            pos_den (array): Position for denominator.
            val_num (None or float): Precomputed density (or log density for
                log form targets) at `pos_num`.
            val_den (None or float): Precomputed density (or log density for
                log form targets) at `pos_den`.

        Returns:
            float: Non-negative density ratio.
        """
        if self.log_form:
            return _exp_or_inf(
                self.log_ratio(pos_num, pos_den, val_num, val_den))
        if val_num is None:
            val_num = self.evaluate(pos_num)
        if val_den is None:
            val_den = self.evaluate(pos_den)
        if val_den == 0:
            return inf
        return val_num / val_den

    def log_ratio(self, pos_num, pos_den, val_num=None, val_den=None):
        """Logarithm of ratio of target densities.

        Args:
            pos_num (array): Position for numerator.
            pos_den (array): Position for denominator.
            val_num (None or float): Precomputed value at `pos_num` in the
                form the target was specified in.
            val_den (None or float): Precomputed value at `pos_den` in the
                form the target was specified in.

        Returns:
            float: Log density ratio, `inf` if the denominator density is zero.
        """
        if not self.log_form:
            ratio = self.ratio(pos_num, pos_den, val_num, val_den)
            return log(ratio) if ratio > 0 else -inf
        if val_num is None:
            val_num = self.log_evaluate(pos_num)
        if val_den is None:
            val_den = self.log_evaluate(pos_den)
        if val_den == -inf:
            return inf
        return val_num - val_den

    def native_evaluate(self, pos):
        """Evaluate the target in the form it was specified in."""
        return self.log_evaluate(pos) if self.log_form else self.evaluate(pos)

    def in_support(self, native_val):
        """Whether a value returned by `native_evaluate` has positive density."""
        return native_val > -inf if self.log_form else native_val > 0
