"""Monte Carlo sampler classes for performing inference."""

from collections import OrderedDict
from contextlib import contextmanager
from pickle import PicklingError
import logging
import signal
import time
from warnings import warn
import numpy as np
from numpy.random import default_rng
import hastings.transitions as trans
from hastings.chains import (
    Chain, MultiChainResult, COMPLETED, FAILED, STOPPED, INTERRUPTED)
from hastings.errors import (
    ConfigurationError, InvalidStartError, NumericEvaluationError)
from hastings.integrators import LeapfrogIntegrator
from hastings.states import ChainState
from hastings.systems import System, EuclideanMetricSystem
from hastings.utils import (
    as_state_array, check_positive, check_positive_int)

# Preferentially import from multiprocess library if available as able to
# serialize much wider range of types including nested functions and lambdas
try:
    from multiprocess import Pool
    MULTIPROCESS_AVAILABLE = True
except ImportError:
    from multiprocessing import Pool
    MULTIPROCESS_AVAILABLE = False


logger = logging.getLogger(__name__)


def _ignore_sigint_initializer():
    """Initializer for processes to force ignoring SIGINT interrupt signals."""
    signal.signal(signal.SIGINT, signal.SIG_IGN)


@contextmanager
def _pool_context_manager(n_process):
    """Context-manager for process pool that ensures clean exiting.

    Compared to built-in context-manager protocol implementation on Pool object
    which calls the `terminate` method on exit which immediately stops the
    worker processes, this manager instead ensures a clean exit by calling
    `close` to prevent any additional jobs being submitted to pool, and then
    `join` to wait for processes to exit.
    """
    pool = Pool(n_process, _ignore_sigint_initializer)
    try:
        yield pool
    finally:
        pool.close()
        pool.join()


def _get_per_chain_rngs(base_rng, n_chain):
    """Construct random number generators (RNGs) for each of a set of chains.

    If the base RNG bit generator has a `jumped` method this is used to produce
    a sequence of independent random substreams. Otherwise if the base RNG bit
    generator has a `_seed_seq` attribute this is used to spawn a sequence of
    generators.
    """
    if hasattr(base_rng, 'bit_generator'):
        bit_generator = base_rng.bit_generator
    elif hasattr(base_rng, '_bit_generator'):
        bit_generator = base_rng._bit_generator
    else:
        bit_generator = None
    if bit_generator is not None and hasattr(bit_generator, 'jumped'):
        return [default_rng(bit_generator.jumped(i)) for i in range(n_chain)]
    elif bit_generator is not None and hasattr(bit_generator, '_seed_seq'):
        seed_sequence = bit_generator._seed_seq
        return [default_rng(seed) for seed in seed_sequence.spawn(n_chain)]
    else:
        raise ValueError(
            f'Unsupported random number generator type {type(base_rng)}.')


def _init_stats(transitions, n_iter):
    """Initialize dictionary of per-iteration transition statistic arrays."""
    stats = {}
    for transition in transitions.values():
        if transition.statistic_types is not None:
            for key, (dtype, val) in transition.statistic_types.items():
                stats[key] = np.full(n_iter, val, dtype)
    return stats


def _sample_chain(init_state, n_iter, rng, transitions, chain_index=0,
                  deadline=None):
    """Sample a chain by iteratively applying a sequence of transition kernels.

    Args:
        init_state (hastings.states.ChainState): Validated initial state.
        n_iter (int): Number of chain iterations to perform.
        rng (numpy.random.Generator): Random number generator owned by this
            chain.
        transitions (OrderedDict[str, Transition]): Ordered dictionary of
            Markov transitions kernels to sequentially sample from on each
            chain iteration.
        chain_index (int): Identifier for chain when sampling multiple chains.
        deadline (None or float): Wall-clock time in seconds after which no
            further iterations are started. Checked only between iterations.

    Returns:
        chain (hastings.chains.Chain): Sampled chain. If a numerical error,
            the deadline or a manual interrupt terminated sampling early the
            chain contains the states sampled up to that point and is flagged
            with the corresponding status.
    """
    state = init_state
    positions = np.full((n_iter + 1,) + state.pos.shape, np.nan)
    positions[0] = state.pos
    stats = _init_stats(transitions, n_iter)
    end_time = None if deadline is None else time.monotonic() + deadline
    status, error = COMPLETED, None
    sample_index = 0
    try:
        for sample_index in range(n_iter):
            if end_time is not None and time.monotonic() > end_time:
                status = STOPPED
                logger.warning(
                    f'Deadline reached for chain {chain_index + 1} after '
                    f'{sample_index} of {n_iter} iterations.')
                break
            for transition in transitions.values():
                state, trans_stats = transition.sample(state, rng)
                if trans_stats is not None:
                    for key, val in trans_stats.items():
                        stats[key][sample_index] = val
            positions[sample_index + 1] = state.pos
    except NumericEvaluationError as e:
        status, error = FAILED, e
        logger.error(
            f'Chain {chain_index + 1} terminated at iteration {sample_index} '
            f'due to numerical error: {e}')
    except KeyboardInterrupt as e:
        status, error = INTERRUPTED, e
        logger.error(
            f'Sampling manually interrupted for chain {chain_index + 1} at '
            f'iteration {sample_index}. Chain states sampled before the '
            f'interruption will be returned.')
    n_done = n_iter if status == COMPLETED else sample_index
    chain = Chain(positions[:n_done + 1], stats, status, error, n_iter)
    if status == COMPLETED and n_iter > 0:
        logger.info(
            f'Chain {chain_index + 1} completed {n_iter} iterations with '
            f'acceptance rate {chain.acceptance_rate:.3f}.')
    return chain


def _sample_chain_worker(chain_kwargs, common_kwargs):
    """Worker process function for parallel sampling of chains."""
    return _sample_chain(**chain_kwargs, **common_kwargs)


def _sample_chains_sequential(per_chain_kwargs, **common_kwargs):
    """Sample multiple chains sequentially in a single process."""
    chains = []
    for chain_kwargs in per_chain_kwargs:
        chain = _sample_chain(**chain_kwargs, **common_kwargs)
        chains.append(chain)
        # If chain was manually interrupted do not start remaining chains
        if chain.status == INTERRUPTED:
            break
    return chains


def _sample_chains_parallel(per_chain_kwargs, n_process, **common_kwargs):
    """Sample multiple chains in parallel over multiple processes."""
    try:
        with _pool_context_manager(n_process) as pool:
            return pool.starmap(
                _sample_chain_worker,
                [(chain_kwargs, common_kwargs)
                 for chain_kwargs in per_chain_kwargs])
    except (PicklingError, AttributeError) as e:
        if not MULTIPROCESS_AVAILABLE and (
                isinstance(e, PicklingError) or 'pickle' in str(e)):
            raise RuntimeError(
                'Error encountered while trying to run chains on multiple '
                'processes in parallel. The inbuilt multiprocessing module '
                'uses pickle to communicate between processes and pickle '
                'does not support pickling anonymous or nested functions. If '
                'you use anonymous or nested functions in your target '
                'functions then installing the Python package multiprocess, '
                'which is able to serialise anonymous and nested functions '
                'and will be used in preference to multiprocessing by this '
                'package when available, may resolve this error.') from e
        else:
            raise e


class MarkovChainMonteCarloMethod(object):
    """Generic Markov chain Monte Carlo (MCMC) sampler.

    Generates a Markov chain from some initial state by iteratively applying
    a sequence of Markov transition operators. The sampler owns a random
    number generator: single chains draw directly from it while multiple
    chains each draw from an independent stream derived from it, so that runs
    are exactly reproducible for a given seed.
    """

    def __init__(self, system, rng, transitions):
        """
        Args:
            system (hastings.systems.System): System wrapping the target
                distribution.
            rng (numpy.random.Generator or int): Numpy random number
                generator or an integer seed to construct one from.
            transitions (OrderedDict[str, Transition]): Ordered dictionary of
                Markov transitions kernels to sequentially sample from on each
                chain iteration.
        """
        if isinstance(rng, np.random.RandomState):
            warn(
                'Use of numpy.random.RandomState random number generators is '
                'deprecated. Please use a numpy.random.Generator instance '
                'instead for example from a call to numpy.random.default_rng.',
                DeprecationWarning)
            rng = np.random.Generator(rng._bit_generator)
        elif isinstance(rng, (int, np.integer)):
            rng = default_rng(rng)
        elif not isinstance(rng, np.random.Generator):
            raise TypeError(
                'rng should be a numpy.random.Generator or an integer seed.')
        self.system = system
        self.rng = rng
        self.transitions = transitions

    def _preprocess_init_state(self, init_state):
        """Convert an initial state value to a `ChainState`."""
        if isinstance(init_state, ChainState):
            init_state = init_state.copy()
            init_state.pos = as_state_array(init_state.pos)
            return init_state
        return ChainState(pos=as_state_array(init_state))

    def _check_init_state(self, state):
        """Check an initial state is a valid point to start a chain from.

        Raises:
            ConfigurationError: If the state dimension is incompatible with
                the sampler configuration.
            InvalidStartError: If the target density at the state is zero.
        """
        if not self.system.in_support(state):
            raise InvalidStartError(
                f'Target density is zero at initial state {state.pos}.')

    def _process_init_states(self, init_states, n_chain):
        """Broadcast or validate initial states for multiple chains."""
        if isinstance(init_states, (list, tuple)):
            if n_chain is not None and n_chain != len(init_states):
                raise ConfigurationError(
                    f'n_chain ({n_chain}) does not match number of initial '
                    f'states ({len(init_states)}).')
            init_states = [
                self._preprocess_init_state(s) for s in init_states]
        elif isinstance(init_states, np.ndarray) and init_states.ndim == 2:
            if n_chain is not None and n_chain != init_states.shape[0]:
                raise ConfigurationError(
                    f'n_chain ({n_chain}) does not match number of initial '
                    f'states ({init_states.shape[0]}).')
            init_states = [self._preprocess_init_state(s) for s in init_states]
        else:
            if n_chain is None:
                raise ConfigurationError(
                    'n_chain must be specified when a single initial state is '
                    'broadcast to all chains.')
            init_state = self._preprocess_init_state(init_states)
            init_states = [init_state.copy() for _ in range(n_chain)]
        if len(init_states) == 0:
            raise ConfigurationError('At least one initial state required.')
        dims = {state.pos.shape for state in init_states}
        if len(dims) > 1:
            raise ConfigurationError(
                f'Initial states must share a dimension, got shapes {dims}.')
        for state in init_states:
            self._check_init_state(state)
        return init_states

    def sample_chain(self, init_state, n_iter, deadline=None):
        """Sample a single Markov chain from a given initial state.

        Args:
            init_state (float or array or hastings.states.ChainState): Initial
                chain state. Must have non-zero target density.
            n_iter (int): Number of chain iterations to perform. The returned
                chain contains `n_iter + 1` states including the initial
                state.
            deadline (None or float): Optional wall-clock time limit in
                seconds, checked only between iterations. If reached the
                chain is returned early with status `'stopped'`.

        Returns:
            chain (hastings.chains.Chain): Sampled chain.

        Raises:
            ConfigurationError: If the sampler configuration or initial state
                dimension is invalid. Raised before any iteration runs.
            InvalidStartError: If the initial state has zero density.
            NumericEvaluationError: If the target density or gradient
                evaluates to an invalid value while sampling.
        """
        n_iter = _check_n_iter(n_iter)
        deadline = _check_deadline(deadline)
        state = self._preprocess_init_state(init_state)
        self._check_init_state(state)
        chain = _sample_chain(
            state, n_iter, self.rng, self.transitions, deadline=deadline)
        if chain.status == FAILED:
            raise chain.error
        return chain

    def sample_chains(self, init_states, n_iter, n_chain=None, n_process=1,
                      deadline=None):
        """Sample multiple independent Markov chains.

        Each chain uses an independent random number stream derived from the
        sampler's generator, with the streams depending only on the chain
        index. Chains may be run in parallel across multiple processes, in
        which case the sampled chains are identical to those from sequential
        sampling. All initial states are validated before any chain is run.

        A chain terminated by a `NumericEvaluationError` is flagged as failed
        in the returned result without affecting the other chains.

        Args:
            init_states (object or Sequence[object]): Either a list or tuple
                of per-chain initial states, a two-dimensional array with
                rows the per-chain initial states, or a single initial state
                (a scalar, one-dimensional array or `ChainState`) to use for
                all `n_chain` chains.
            n_iter (int): Number of iterations per chain.
            n_chain (None or int): Number of chains. Required if a single
                initial state is given, otherwise must match the number of
                initial states if specified.
            n_process (int): Number of parallel processes to run chains over.
                If `n_process=1` chains are run sequentially in the current
                process.
            deadline (None or float): Optional per-chain wall-clock time limit
                in seconds, checked only between iterations.

        Returns:
            result (hastings.chains.MultiChainResult): Sampled chains keyed
                by chain index.
        """
        n_iter = _check_n_iter(n_iter)
        deadline = _check_deadline(deadline)
        n_process = check_positive_int(n_process, 'n_process')
        if n_chain is not None:
            n_chain = check_positive_int(n_chain, 'n_chain')
        init_states = self._process_init_states(init_states, n_chain)
        n_chain = len(init_states)
        rngs = _get_per_chain_rngs(self.rng, n_chain)
        per_chain_kwargs = [
            {'init_state': state, 'rng': rng, 'chain_index': c}
            for c, (state, rng) in enumerate(zip(init_states, rngs))]
        common_kwargs = {
            'n_iter': n_iter, 'transitions': self.transitions,
            'deadline': deadline}
        if n_process == 1:
            chains = _sample_chains_sequential(
                per_chain_kwargs, **common_kwargs)
        else:
            n_process = min(n_process, n_chain)
            chains = _sample_chains_parallel(
                per_chain_kwargs, n_process, **common_kwargs)
        result = MultiChainResult(dict(enumerate(chains)))
        if len(result.incomplete) > 0:
            logger.warning(
                f'{len(result.incomplete)} of {n_chain} chains did not '
                f'complete: chain indices {result.incomplete}.')
        return result


def _check_n_iter(n_iter):
    if isinstance(n_iter, bool) or not isinstance(n_iter, (int, np.integer)):
        raise ConfigurationError(f'n_iter must be an integer, got {n_iter!r}.')
    if n_iter < 0:
        raise ConfigurationError(f'n_iter must be non-negative, got {n_iter}.')
    return int(n_iter)


def _check_deadline(deadline):
    return None if deadline is None else check_positive(deadline, 'deadline')


class MetropolisHastings(MarkovChainMonteCarloMethod):
    """Metropolis-Hastings sampler.

    Each chain iteration proposes a new state from a proposal distribution
    conditioned on the current state and accepts or rejects it according to
    the Metropolis-Hastings acceptance rule, leaving the target distribution
    invariant [1, 2].

    The proposal scale is not tuned automatically.

    References:

      1. Metropolis, N., Rosenbluth, A.W., Rosenbluth, M.N., Teller, A.H. and
         Teller, E., 1953. Equation of state calculations by fast computing
         machines. The Journal of Chemical Physics, 21(6), pp.1087-1092.
      2. Hastings, W.K., 1970. Monte Carlo sampling methods using Markov
         chains and their applications. Biometrika, 57(1), pp.97-109.
    """

    def __init__(self, target, proposal, rng):
        """
        Args:
            target (hastings.targets.Target): Target distribution to sample.
            proposal (hastings.proposals.Proposal): Proposal distribution.
            rng (numpy.random.Generator or int): Numpy random number
                generator or an integer seed.
        """
        system = System(target)
        super().__init__(
            system, rng,
            OrderedDict(
                metropolis_transition=trans.MetropolisHastingsTransition(
                    system, proposal)))

    @property
    def proposal(self):
        """Proposal distribution used in Metropolis-Hastings transition."""
        return self.transitions['metropolis_transition'].proposal

    def _check_init_state(self, state):
        self.proposal.check_dimension(state.pos.shape[0])
        super()._check_init_state(state)


class HamiltonianMCMC(MarkovChainMonteCarloMethod):
    """Wrapper class for Hamiltonian Monte Carlo (HMC) methods.

    The target (position) variable is augmented with a Gaussian momentum
    variable. Each chain iteration independently resamples the momentum and
    then simulates the Hamiltonian dynamics with a leapfrog integrator to
    propose a new position, which is accepted or rejected with a Metropolis
    step based on the change in the Hamiltonian. The momentum is discarded
    after each iteration.

    The step size, number of steps and mass are not tuned automatically. A
    step size which is too large gives poor energy conservation and frequent
    rejections, one which is too small mixes slowly. Too few steps gives
    random-walk behaviour, while trajectories close to a half period of the
    dynamics propose points near the reflection of the current position.

    References:

      1. Duane, S., Kennedy, A.D., Pendleton, B.J. and Roweth, D., 1987.
         Hybrid Monte Carlo. Physics letters B, 195(2), pp.216-222.
      2. Neal, R.M., 2011. MCMC using Hamiltonian dynamics.
         Handbook of Markov Chain Monte Carlo, 2(11), p.2.
    """

    def __init__(self, system, rng, integration_transition):
        """
        Args:
            system (hastings.systems.EuclideanMetricSystem): Hamiltonian
                system to be simulated.
            rng (numpy.random.Generator or int): Numpy random number
                generator or an integer seed.
            integration_transition (
                    hastings.transitions.MetropolisIntegrationTransition):
                Markov transition kernel which simulates the Hamiltonian
                dynamics to propose new positions.
        """
        super().__init__(
            system, rng,
            OrderedDict(
                momentum_transition=trans.IndependentMomentumTransition(
                    system),
                integration_transition=integration_transition))

    def _preprocess_init_state(self, init_state):
        state = super()._preprocess_init_state(init_state)
        if 'mom' not in state:
            state = ChainState(
                pos=state.pos, mom=None, _call_counts=state._call_counts)
        return state

    def _check_init_state(self, state):
        self.system.check_dimension(state.pos.shape[0])
        super()._check_init_state(state)
        # Evaluate gradient so dimension mismatches fail before sampling
        self.system.grad_neg_log_dens(state)

    @property
    def step_size(self):
        """Integrator step size."""
        return self.transitions['integration_transition'].integrator.step_size

    @step_size.setter
    def step_size(self, value):
        self.transitions['integration_transition'].integrator.step_size = value


class StaticMetropolisHMC(HamiltonianMCMC):
    """Static integration time HMC implementation with Metropolis sampling.

    Each trajectory is integrated for a fixed number of leapfrog steps. This
    is the originally proposed Hybrid Monte Carlo algorithm.
    """

    def __init__(self, target, rng, step_size, n_step, mass=1.):
        """
        Args:
            target (hastings.targets.Target): Target distribution with a
                gradient function.
            rng (numpy.random.Generator or int): Numpy random number
                generator or an integer seed.
            step_size (float): Positive leapfrog integrator step size.
            n_step (int): Positive number of leapfrog steps per iteration.
            mass (float or array): Positive scalar or per-dimension mass.
        """
        system = EuclideanMetricSystem(target, mass)
        integrator = LeapfrogIntegrator(system, step_size)
        super().__init__(
            system, rng,
            trans.MetropolisStaticIntegrationTransition(
                system, integrator, n_step))

    @property
    def n_step(self):
        """Number of integrator steps per integrator transition."""
        return self.transitions['integration_transition'].n_step

    @n_step.setter
    def n_step(self, value):
        self.transitions['integration_transition'].n_step = value


class RandomMetropolisHMC(HamiltonianMCMC):
    """Random integration time HMC with Metropolis sampling of new state.

    Each trajectory is integrated for a number of leapfrog steps drawn
    uniformly from an integer interval, avoiding poor mixing when a fixed
    trajectory length is close to a period of the dynamics.
    """

    def __init__(self, target, rng, step_size, n_step_range, mass=1.):
        """
        Args:
            target (hastings.targets.Target): Target distribution with a
                gradient function.
            rng (numpy.random.Generator or int): Numpy random number
                generator or an integer seed.
            step_size (float): Positive leapfrog integrator step size.
            n_step_range (Tuple[int, int]): Inclusive lower and upper bounds
                on the number of leapfrog steps per iteration.
            mass (float or array): Positive scalar or per-dimension mass.
        """
        system = EuclideanMetricSystem(target, mass)
        integrator = LeapfrogIntegrator(system, step_size)
        super().__init__(
            system, rng,
            trans.MetropolisRandomIntegrationTransition(
                system, integrator, n_step_range))

    @property
    def n_step_range(self):
        """Interval number of integrator steps per transition drawn from."""
        return self.transitions['integration_transition'].n_step_range

    @n_step_range.setter
    def n_step_range(self, value):
        self.transitions['integration_transition'].n_step_range = value
