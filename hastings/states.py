"""Mutable chain state objects which cache target evaluations."""

import copy
from collections import Counter
from functools import wraps


def _cache_key_func(system, method):
    """Construct cache key for a given system and method pair."""
    return (f'{type(system).__name__}.{method.__name__}', id(system))


def cache_in_state(*depends_on):
    """Memoizing decorator for system methods.

    Used to decorate `hastings.systems.System` methods which compute a
    function of one or more chain state variables. The value returned by the
    wrapped method is cached in the `ChainState` object passed to it, and the
    cached value is invalidated when any of the state variables it depends on
    is reassigned. This means for example the target density at the current
    position of a chain is evaluated once however many iterations the chain
    remains at that position.

    Args:
       *depends_on: Names of the state variables the value returned by the
           method depends on, e.g. 'pos' or 'mom'.
    """
    def cache_in_state_decorator(method):
        @wraps(method)
        def wrapper(self, state):
            key = _cache_key_func(self, method)
            if key not in state._cache:
                for dep in depends_on:
                    state._dependencies.setdefault(dep, set()).add(key)
            if state._cache.get(key) is None:
                state._cache[key] = method(self, state)
                state._call_counts[key] += 1
            return state._cache[key]
        return wrapper
    return cache_in_state_decorator


class ChainState(object):
    """Markov chain state.

    Records the current values of the chain state variables (the position
    `pos` and for Hamiltonian samplers the momentum `mom`) and caches derived
    quantities such as the target density so they are not recomputed.

    State variables should be reassigned rather than updated in place, as the
    cache is only invalidated on attribute assignment.
    """

    def __init__(self, *, _call_counts=None, _dependencies=None, _cache=None,
                 **variables):
        """Create a new `ChainState` instance.

        Keyword arguments not starting with an underscore set the state
        variables, e.g. `ChainState(pos=pos, mom=None)`.

        Kwargs:
            **variables: State variable values.
            _call_counts (None or Counter): Counter of calls to memoized
                system methods, shared between copies of a state.
            _dependencies (None or Dict[str, Set]): Intended for internal use
                only. Mapping from state variable names to cache keys of
                values depending on them.
            _cache (None or Dict): Intended for internal use only. Cached
                outputs of memoized system methods.
        """
        self.__dict__['_variables'] = variables
        self.__dict__['_dependencies'] = (
            {name: set() for name in variables} if _dependencies is None
            else _dependencies)
        self.__dict__['_cache'] = {} if _cache is None else _cache
        self.__dict__['_call_counts'] = (
            Counter() if _call_counts is None else _call_counts)

    def __getattr__(self, name):
        if name in self._variables:
            return self._variables[name]
        else:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name, value):
        if name in self._variables:
            self._variables[name] = value
            for dep in self._dependencies.get(name, ()):
                self._cache[dep] = None
        else:
            return super().__setattr__(name, value)

    def __contains__(self, name):
        return name in self._variables

    def copy(self):
        """Create a copy of the state object.

        Returns:
            state_copy (ChainState): A copy of the state with independent
                copies of the variable values and of the cache.
        """
        return type(self)(
            _dependencies={k: set(v) for k, v in self._dependencies.items()},
            _cache=self._cache.copy(), _call_counts=self._call_counts,
            **{name: copy.copy(val) for name, val in self._variables.items()})

    def __str__(self):
        return (
            '(\n ' +
            ',\n '.join([f'{k}={v}' for k, v in self._variables.items()]) +
            ')'
        )

    def __repr__(self):
        return type(self).__name__ + str(self)

    def __getstate__(self):
        return {
            'variables': self._variables,
            'dependencies': self._dependencies,
            'cache': self._cache,
            'call_counts': self._call_counts}

    def __setstate__(self, state):
        self.__dict__['_variables'] = state['variables']
        self.__dict__['_dependencies'] = state['dependencies']
        self.__dict__['_cache'] = state['cache']
        self.__dict__['_call_counts'] = state['call_counts']
