"""Systems binding a target distribution to chain states."""

import numpy as np
from hastings.errors import ConfigurationError
from hastings.states import cache_in_state
from hastings.targets import Target
from hastings.utils import check_dimension, check_positive


class System(object):
    """Target distribution evaluated at chain states.

    Wraps a `hastings.targets.Target` with methods taking
    `hastings.states.ChainState` arguments, memoizing the target evaluations
    in the state objects.
    """

    def __init__(self, target):
        """
        Args:
            target (hastings.targets.Target): Target distribution to sample
                from.
        """
        if not isinstance(target, Target):
            raise TypeError('target should be a hastings.targets.Target.')
        self.target = target

    @cache_in_state('pos')
    def native_dens(self, state):
        """Density (or log density for log form targets) at state position.

        Args:
            state (hastings.states.ChainState): State to compute value at.

        Returns:
            float: Target value in the form the target was specified in.
        """
        return self.target.native_evaluate(state.pos)

    def in_support(self, state):
        """Whether the target density at the state position is positive."""
        return self.target.in_support(self.native_dens(state))

    def dens_ratio(self, state_num, state_den):
        """Ratio of target densities at two states' positions."""
        return self.target.ratio(
            state_num.pos, state_den.pos,
            self.native_dens(state_num), self.native_dens(state_den))

    def log_dens_ratio(self, state_num, state_den):
        """Logarithm of ratio of target densities at two states' positions."""
        return self.target.log_ratio(
            state_num.pos, state_den.pos,
            self.native_dens(state_num), self.native_dens(state_den))

    @cache_in_state('pos')
    def neg_log_dens(self, state):
        """Negative logarithm of unnormalized target density.

        Args:
            state (hastings.states.ChainState): State to compute value at.

        Returns:
            float: Value of negative log density, `inf` outside support.
        """
        if self.target.log_form:
            return -self.native_dens(state)
        return self.target.neg_log_evaluate(state.pos)

    @cache_in_state('pos')
    def grad_neg_log_dens(self, state):
        """Derivative of negative log density with respect to position.

        Args:
            state (hastings.states.ChainState): State to compute value at.

        Returns:
            array: Gradient with same shape as `state.pos`.
        """
        return self.target.gradient(state.pos)


class EuclideanMetricSystem(System):
    r"""Hamiltonian system with a diagonal Euclidean metric.

    The momentum variables are independent of the position with a zero-mean
    Gaussian distribution with diagonal covariance \(m I\) for a positive
    scalar mass \(m\) (or per-dimension masses \(m_i\)), so that the
    Hamiltonian is

    \[ h(q, p) = u(q) + k(p), \quad u(q) = -\log f(q), \quad
       k(p) = \sum_i \frac{p_i^2}{2 m_i} \]

    where \(q\) and \(p\) are the position and momentum respectively and
    \(f\) is the unnormalized target density.

    The mass should match the scale of the target: a mass poorly matched to
    the relative scales of the target along different dimensions produces
    simulated trajectories which move too far along some dimensions and too
    little along others.
    """

    def __init__(self, target, mass=1.):
        """
        Args:
            target (hastings.targets.Target): Target distribution to sample
                from. Must have a `grad_neg_log_dens` function.
            mass (float or array): Positive scalar mass, or one-dimensional
                array of positive per-dimension masses.
        """
        super().__init__(target)
        if not target.has_gradient:
            raise ConfigurationError(
                'Hamiltonian systems require a target with a '
                'grad_neg_log_dens function.')
        self.mass = check_positive(mass, 'mass')

    def check_dimension(self, dim):
        """Check the mass is compatible with a state dimension."""
        check_dimension(self.mass, dim, 'mass')

    def h1(self, state):
        """Potential energy component of Hamiltonian."""
        return self.neg_log_dens(state)

    def dh1_dpos(self, state):
        """Derivative of potential energy with respect to position."""
        return self.grad_neg_log_dens(state)

    @cache_in_state('mom')
    def h2(self, state):
        """Kinetic energy component of Hamiltonian."""
        return 0.5 * float(np.sum(state.mom * self.dh2_dmom(state)))

    @cache_in_state('mom')
    def dh2_dmom(self, state):
        """Derivative of kinetic energy with respect to momentum (velocity)."""
        return state.mom / self.mass

    def h(self, state):
        """Hamiltonian function for system.

        Args:
            state (hastings.states.ChainState): State to compute value at.

        Returns:
            float: Value of Hamiltonian.
        """
        return self.h1(state) + self.h2(state)

    def sample_momentum(self, state, rng):
        """Sample a momentum from its Gaussian distribution.

        Args:
            state (hastings.states.ChainState): State defining the position
                (only its shape is used).
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            mom (array): Sampled momentum.
        """
        return np.sqrt(self.mass) * rng.standard_normal(state.pos.shape)
