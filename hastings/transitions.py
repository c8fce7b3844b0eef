"""Markov transition kernels."""

from abc import ABC, abstractmethod
from collections import namedtuple
from math import exp, inf
import logging
import numpy as np
from hastings.errors import ConfigurationError
from hastings.proposals import Proposal
from hastings.states import ChainState
from hastings.utils import check_positive_int

logger = logging.getLogger(__name__)


ProposalOutcome = namedtuple(
    'ProposalOutcome', ['state', 'accept_prob', 'accepted'])
ProposalOutcome.__doc__ = """Outcome of a single accept/reject step.

Attributes:
    state (hastings.states.ChainState): Proposed state.
    accept_prob (float): Acceptance probability `min(1, r)`.
    accepted (bool): Whether the proposed state was accepted.
"""


def _accept_prob_from_ratio(ratio):
    """Acceptance probability `min(1, ratio)` with NaN mapped to zero."""
    if np.isnan(ratio):
        return 0.
    return min(1., ratio)


def decide(accept_prob, rng):
    """Make a Metropolis accept decision.

    A uniform variate `u` is always drawn so that the random stream consumed
    per iteration does not depend on the acceptance probability. The proposal
    is accepted if `u <= accept_prob`, except that zero probability proposals
    are never accepted.

    Args:
        accept_prob (float): Acceptance probability in [0, 1].
        rng (numpy.random.Generator): Numpy random number generator.

    Returns:
        bool: Whether the proposal is accepted.
    """
    u = rng.uniform()
    return accept_prob > 0 and u <= accept_prob


class Transition(ABC):
    """Base class for Markov transition kernels.

    Defines expected interface for transitions by sampler classes.
    """

    #: Names of state variables accessed by this transition.
    state_variables = frozenset()

    #: Either `None` if no statistics are returned by `sample` or a dictionary
    #: with keys the names of the statistics and values tuples of NumPy
    #: `dtype` and default value for the arrays used to record them.
    statistic_types = None

    @abstractmethod
    def sample(self, state, rng):
        """Sample a new chain state from the Markov transition kernel.

        Args:
            state (hastings.states.ChainState): Current chain state to
                condition transition kernel on.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            state (hastings.states.ChainState): Updated state object.
            trans_stats (Dict[str, numeric] or None): Any statistics computed
                during the transition or `None` if no statistics.
        """


class MetropolisHastingsTransition(Transition):
    r"""Metropolis-Hastings transition with a user specified proposal.

    Each transition proposes a new position \(x'\) from the proposal
    distribution \(g(\cdot \mid x)\) conditioned on the current position
    \(x\), computes the acceptance ratio

    \[ r = \frac{f(x')}{f(x)} \frac{g(x \mid x')}{g(x' \mid x)} \]

    (with the second factor omitted for symmetric proposals) and accepts the
    proposal with probability \(\min(1, r)\), otherwise remaining at \(x\).

    If the current density \(f(x)\) is zero, \(r\) is taken to be infinite
    so the proposal is always accepted and the chain cannot become stuck.

    References:

      1. Metropolis, N., Rosenbluth, A.W., Rosenbluth, M.N., Teller, A.H. and
         Teller, E., 1953. Equation of state calculations by fast computing
         machines. The Journal of Chemical Physics, 21(6), pp.1087-1092.
      2. Hastings, W.K., 1970. Monte Carlo sampling methods using Markov
         chains and their applications. Biometrika, 57(1), pp.97-109.
    """

    state_variables = frozenset({'pos'})
    statistic_types = {
        'accept_prob': (np.float64, np.nan),
        'accepted': (np.bool_, False),
    }

    def __init__(self, system, proposal):
        """
        Args:
            system (hastings.systems.System): System wrapping the target
                distribution.
            proposal (hastings.proposals.Proposal): Proposal distribution.
        """
        if not isinstance(proposal, Proposal):
            raise TypeError(
                'proposal should be a hastings.proposals.Proposal instance.')
        self.system = system
        self.proposal = proposal

    def propose(self, state, rng):
        """Draw a proposed state conditioned on the current state."""
        return ChainState(
            pos=self.proposal.draw(state.pos, rng),
            _call_counts=state._call_counts)

    def acceptance_ratio(self, state, state_prop):
        """Metropolis-Hastings acceptance ratio for a proposed move.

        For targets specified by a density the ratio is formed by directly
        dividing densities and multiplying by the Hastings correction, so that
        for symmetric proposals it is exactly `f(proposed) / f(current)`. For
        targets specified by a log density the ratio is formed in log space.

        Args:
            state (hastings.states.ChainState): Current state.
            state_prop (hastings.states.ChainState): Proposed state.

        Returns:
            float: Non-negative acceptance ratio, `inf` if the current state
                has zero density.
        """
        if not self.system.in_support(state):
            logger.debug(
                'Current state has zero target density, proposal will be '
                'accepted.')
            return inf
        if not self.system.in_support(state_prop):
            return 0.
        if self.system.target.log_form:
            log_ratio = self.system.log_dens_ratio(state_prop, state)
            log_ratio += self.proposal.log_correction(
                state.pos, state_prop.pos)
            try:
                return exp(log_ratio)
            except OverflowError:
                return inf
        ratio = self.system.dens_ratio(state_prop, state)
        if not self.proposal.is_symmetric:
            ratio *= self.proposal.correction(state.pos, state_prop.pos)
        return ratio

    def step(self, state, rng):
        """Perform one propose, evaluate and decide cycle.

        Args:
            state (hastings.states.ChainState): Current chain state.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            ProposalOutcome: Proposed state, acceptance probability and
                accept decision.
        """
        state_prop = self.propose(state, rng)
        accept_prob = _accept_prob_from_ratio(
            self.acceptance_ratio(state, state_prop))
        return ProposalOutcome(
            state_prop, accept_prob, decide(accept_prob, rng))

    def sample(self, state, rng):
        outcome = self.step(state, rng)
        stats = {
            'accept_prob': outcome.accept_prob,
            'accepted': outcome.accepted,
        }
        return (outcome.state if outcome.accepted else state), stats


class IndependentMomentumTransition(Transition):
    """Independent momentum transition.

    Independently resamples the momentum component of the state from its
    Gaussian distribution, discarding any previous value.
    """

    state_variables = frozenset({'pos', 'mom'})
    statistic_types = None

    def __init__(self, system):
        """
        Args:
            system (hastings.systems.EuclideanMetricSystem): Hamiltonian
                system defining the momentum distribution.
        """
        self.system = system

    def sample(self, state, rng):
        state.mom = self.system.sample_momentum(state, rng)
        return state, None


class MetropolisIntegrationTransition(Transition):
    r"""Base for HMC transitions using a Metropolis accept step.

    In each transition a trajectory is generated by integrating the
    Hamiltonian dynamics from the current state for a number of leapfrog
    steps. The state at the end of the trajectory is accepted as the next
    state with probability

    \[ \min(1, \exp(h(q, p) - h(q^*, p^*))) \]

    where \(h\) is the Hamiltonian and \((q, p)\), \((q^*, p^*)\) the
    initial and final states of the trajectory. The momentum is discarded
    after the accept decision whatever its outcome.

    The trajectory length (number of steps times step size) is not tuned
    automatically. Too few steps gives proposals close to the current
    position with random-walk behaviour, while a trajectory close to a full
    or half period of the dynamics returns to (or reflects through) the
    starting point giving proposals which make little progress.
    """

    state_variables = frozenset({'pos', 'mom'})
    statistic_types = {
        'accept_prob': (np.float64, np.nan),
        'accepted': (np.bool_, False),
        'n_step': (np.int64, -1),
        'delta_h': (np.float64, np.nan),
    }

    def __init__(self, system, integrator):
        """
        Args:
            system (hastings.systems.EuclideanMetricSystem): Hamiltonian
                system to be simulated.
            integrator (hastings.integrators.LeapfrogIntegrator): Integrator
                for the Hamiltonian dynamics of `system`.
        """
        self.system = system
        self.integrator = integrator

    def _sample_n_step(self, state, n_step, rng):
        h_init = self.system.h(state)
        state_p = self.integrator.integrate(state, n_step)
        h_final = self.system.h(state_p)
        delta_h = h_final - h_init
        if np.isnan(delta_h):
            accept_prob = 0.
        elif delta_h <= 0:
            accept_prob = 1.
        else:
            accept_prob = exp(-delta_h)
        accepted = decide(accept_prob, rng)
        if accepted:
            state = state_p
        state.mom = None
        stats = {
            'accept_prob': accept_prob,
            'accepted': accepted,
            'n_step': n_step,
            'delta_h': delta_h,
        }
        return state, stats

    @abstractmethod
    def sample(self, state, rng):
        """Sample a new position using a simulated trajectory as proposal."""


class MetropolisStaticIntegrationTransition(MetropolisIntegrationTransition):
    """Static integration transition with Metropolis sampling of new state.

    The trajectory is generated by integrating for a fixed number of steps.
    This is the originally proposed Hybrid Monte Carlo algorithm [1, 2].

    References:

      1. Duane, S., Kennedy, A.D., Pendleton, B.J. and Roweth, D., 1987.
         Hybrid Monte Carlo. Physics letters B, 195(2), pp.216-222.
      2. Neal, R.M., 2011. MCMC using Hamiltonian dynamics.
         Handbook of Markov Chain Monte Carlo, 2(11), p.2.
    """

    def __init__(self, system, integrator, n_step):
        """
        Args:
            system (hastings.systems.EuclideanMetricSystem): Hamiltonian
                system to be simulated.
            integrator (hastings.integrators.LeapfrogIntegrator): Integrator
                for the Hamiltonian dynamics of `system`.
            n_step (int): Number of integrator steps to simulate in each
                transition.
        """
        super().__init__(system, integrator)
        self.n_step = n_step

    @property
    def n_step(self):
        """Number of integrator steps per transition."""
        return self._n_step

    @n_step.setter
    def n_step(self, value):
        self._n_step = check_positive_int(value, 'n_step')

    def sample(self, state, rng):
        return self._sample_n_step(state, self.n_step, rng)


class MetropolisRandomIntegrationTransition(MetropolisIntegrationTransition):
    """Random integration transition with Metropolis sampling of new state.

    The number of integrator steps for each trajectory is drawn uniformly
    from an integer interval, which avoids poor mixing due to an integration
    time close to the period of (near) periodic dynamics [1, 2].

    References:

      1. Neal, R.M., 2011. MCMC using Hamiltonian dynamics.
         Handbook of Markov Chain Monte Carlo, 2(11), p.2.
      2. Mackenzie, P.B., 1989. An improved hybrid Monte Carlo method.
         Physics Letters B, 226(3-4), pp.369-371.
    """

    def __init__(self, system, integrator, n_step_range):
        """
        Args:
            system (hastings.systems.EuclideanMetricSystem): Hamiltonian
                system to be simulated.
            integrator (hastings.integrators.LeapfrogIntegrator): Integrator
                for the Hamiltonian dynamics of `system`.
            n_step_range (Tuple[int, int]): Tuple `(lower, upper)` of positive
                integers with `lower < upper` specifying the inclusive bounds
                of the interval the number of steps is drawn from.
        """
        super().__init__(system, integrator)
        self.n_step_range = n_step_range

    @property
    def n_step_range(self):
        """Inclusive bounds on number of integrator steps per transition."""
        return self._n_step_range

    @n_step_range.setter
    def n_step_range(self, value):
        n_step_lower, n_step_upper = value
        n_step_lower = check_positive_int(n_step_lower, 'n_step_range[0]')
        n_step_upper = check_positive_int(n_step_upper, 'n_step_range[1]')
        if n_step_lower >= n_step_upper:
            raise ConfigurationError(
                'First entry of n_step_range must be less than last.')
        self._n_step_range = (n_step_lower, n_step_upper)

    def sample(self, state, rng):
        n_step = int(rng.integers(
            self.n_step_range[0], self.n_step_range[1], endpoint=True))
        return self._sample_n_step(state, n_step, rng)
