"""Immutable containers for sampled chains."""

from collections.abc import Mapping
import numpy as np
from hastings.errors import ConfigurationError


COMPLETED = 'completed'
FAILED = 'failed'
STOPPED = 'stopped'
INTERRUPTED = 'interrupted'


def _freeze(array):
    array = np.array(array)
    array.flags.writeable = False
    return array


class Chain(object):
    """Sequence of states produced by a single sampler run.

    A chain sampled for `n_iter` iterations holds `n_iter + 1` states, the
    first being the initial state. Chains which terminated early (due to a
    numerical error, a deadline or a manual interrupt) hold only the states
    produced before termination and record the reason in `status` and
    `error`.

    The position and statistic arrays are read-only.
    """

    def __init__(self, positions, stats=None, status=COMPLETED, error=None,
                 n_iter=None):
        """
        Args:
            positions (array): Array of shape `(n_state, dim)` of chain
                positions, including the initial position.
            stats (None or Dict[str, array]): Per-iteration transition
                statistics, each array of length `n_state - 1`.
            status (str): One of `'completed'`, `'failed'`, `'stopped'` or
                `'interrupted'`.
            error (None or Exception): Exception which terminated the chain.
            n_iter (None or int): Number of iterations requested. Defaults to
                the number of iterations performed.
        """
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 2:
            raise ConfigurationError(
                f'Chain positions must be a two-dimensional array, got shape '
                f'{positions.shape}.')
        self._positions = _freeze(positions)
        n_done = positions.shape[0] - 1
        self._stats = {
            key: _freeze(np.asarray(val)[:n_done])
            for key, val in ({} if stats is None else stats).items()}
        self._status = status
        self._error = error
        self._n_iter = n_done if n_iter is None else n_iter

    @property
    def positions(self):
        """Read-only array of chain positions of shape `(n_state, dim)`."""
        return self._positions

    @property
    def stats(self):
        """Dictionary of read-only per-iteration statistic arrays."""
        return dict(self._stats)

    @property
    def status(self):
        """Termination status of chain."""
        return self._status

    @property
    def error(self):
        """Exception which terminated the chain or `None`."""
        return self._error

    @property
    def completed(self):
        """Whether all requested iterations were performed."""
        return self._status == COMPLETED

    @property
    def failed(self):
        """Whether the chain was terminated by a numerical error."""
        return self._status == FAILED

    @property
    def n_iter(self):
        """Number of iterations requested when sampling the chain."""
        return self._n_iter

    @property
    def dim(self):
        """Dimension of chain states."""
        return self._positions.shape[1]

    @property
    def acceptance_rate(self):
        """Proportion of iterations in which a proposal was accepted."""
        accepted = self._stats.get('accepted')
        if accepted is None or accepted.size == 0:
            return np.nan
        return float(np.mean(accepted))

    def trim(self, burn_in):
        """Positions with an initial burn-in prefix removed.

        Args:
            burn_in (int): Number of initial states to discard.

        Returns:
            array: Read-only array of remaining positions.
        """
        if burn_in < 0 or burn_in >= len(self):
            raise ConfigurationError(
                f'burn_in must be in [0, {len(self)}), got {burn_in}.')
        return self._positions[burn_in:]

    def __reduce__(self):
        return (
            type(self),
            (self._positions, self._stats, self._status, self._error,
             self._n_iter))

    def __len__(self):
        return self._positions.shape[0]

    def __getitem__(self, index):
        return self._positions[index]

    def __iter__(self):
        return iter(self._positions)

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self._positions, dtype=dtype)

    def __repr__(self):
        return (
            f'{type(self).__name__}(n_state={len(self)}, dim={self.dim}, '
            f'status={self._status!r})')


class MultiChainResult(Mapping):
    """Collection of independently sampled chains keyed by chain index.

    Chains which did not complete are retained and flagged rather than
    discarded. Aggregate accessors such as `positions` only use completed
    chains, which are guaranteed to share length and dimension.
    """

    def __init__(self, chains):
        """
        Args:
            chains (Sequence[Chain] or Mapping[int, Chain]): Sampled chains.
        """
        if not isinstance(chains, Mapping):
            chains = dict(enumerate(chains))
        self._chains = dict(chains)
        shapes = {
            chain.positions.shape for chain in self._chains.values()
            if chain.completed}
        if len(shapes) > 1:
            raise ConfigurationError(
                f'Completed chains must share length and dimension, got '
                f'shapes {shapes}.')

    def __getitem__(self, index):
        return self._chains[index]

    def __iter__(self):
        return iter(self._chains)

    def __len__(self):
        return len(self._chains)

    @property
    def completed(self):
        """Indices of chains which performed all requested iterations."""
        return [i for i, chain in self._chains.items() if chain.completed]

    @property
    def incomplete(self):
        """Indices of chains which did not complete for any reason."""
        return [i for i, chain in self._chains.items() if not chain.completed]

    @property
    def failed(self):
        """Indices of chains terminated by a numerical error."""
        return [i for i, chain in self._chains.items() if chain.failed]

    @property
    def errors(self):
        """Dictionary of exceptions keyed by index of chain they terminated."""
        return {
            i: chain.error for i, chain in self._chains.items()
            if chain.error is not None}

    def positions(self, burn_in=0):
        """Stacked positions of completed chains.

        Args:
            burn_in (int): Number of initial states to discard from each chain.

        Returns:
            array: Array of shape `(n_chain, n_state - burn_in, dim)`.
        """
        chains = [self._chains[i] for i in self.completed]
        if len(chains) == 0:
            raise ConfigurationError('No completed chains in result.')
        return np.stack([chain.trim(burn_in) for chain in chains])

    def stats(self, key):
        """Stacked per-iteration statistic of completed chains."""
        return np.stack([self._chains[i].stats[key] for i in self.completed])

    def trim(self, burn_in):
        """New result with a burn-in prefix removed from every chain.

        Statistics are trimmed so that each remaining state after the first
        stays aligned with the statistics of the iteration which produced it.

        Args:
            burn_in (int): Number of initial states to discard.

        Returns:
            MultiChainResult: Trimmed result.
        """
        trimmed = {}
        for i, chain in self._chains.items():
            chain_burn_in = min(burn_in, len(chain) - 1)
            stats = {
                key: val[chain_burn_in:] for key, val in chain.stats.items()}
            positions = chain.trim(chain_burn_in)
            trimmed[i] = Chain(
                positions, stats, chain.status, chain.error, chain.n_iter)
        return MultiChainResult(trimmed)

    def __repr__(self):
        return (
            f'{type(self).__name__}(n_chain={len(self)}, '
            f'completed={self.completed})')
