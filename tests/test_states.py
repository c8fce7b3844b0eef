import pickle
import numpy as np
import pytest
import hastings


class _CountingSystem(object):

    def __init__(self):
        self.n_call = 0

    @hastings.states.cache_in_state('pos')
    def sum_pos(self, state):
        self.n_call += 1
        return float(np.sum(state.pos))

    @hastings.states.cache_in_state('mom')
    def sum_mom(self, state):
        self.n_call += 1
        return float(np.sum(state.mom))


@pytest.fixture
def state_vars():
    return {'pos': np.array([0.5, -1.]), 'mom': np.array([1., 2.])}


def test_state_construction(state_vars):
    state = hastings.states.ChainState(**state_vars)
    for key, val in state_vars.items():
        assert key in state
        assert getattr(state, key) is val


def test_state_missing_attribute_raises(state_vars):
    state = hastings.states.ChainState(**state_vars)
    with pytest.raises(AttributeError, match='no attribute'):
        state.spam


def test_state_copy_independent(state_vars):
    state = hastings.states.ChainState(**state_vars)
    state_copy = state.copy()
    state_copy.pos[0] = 10.
    assert state.pos[0] == 0.5


def test_cached_method_called_once(state_vars):
    system = _CountingSystem()
    state = hastings.states.ChainState(**state_vars)
    assert system.sum_pos(state) == -0.5
    assert system.sum_pos(state) == -0.5
    assert system.n_call == 1


def test_cache_invalidated_on_dependency_assignment(state_vars):
    system = _CountingSystem()
    state = hastings.states.ChainState(**state_vars)
    system.sum_pos(state)
    system.sum_mom(state)
    state.pos = np.array([1., 1.])
    assert system.sum_pos(state) == 2.
    assert system.sum_mom(state) == 3.
    assert system.n_call == 3


def test_copy_shares_call_counts(state_vars):
    system = _CountingSystem()
    state = hastings.states.ChainState(**state_vars)
    state_copy = state.copy()
    state_copy.pos = np.zeros(2)
    system.sum_pos(state)
    system.sum_pos(state_copy)
    assert sum(state._call_counts.values()) == 2
    assert state._call_counts is state_copy._call_counts


def test_state_pickling(state_vars):
    state = hastings.states.ChainState(**state_vars)
    unpickled_state = pickle.loads(pickle.dumps(state))
    assert isinstance(unpickled_state, hastings.states.ChainState)
    for key, val in state_vars.items():
        assert np.all(getattr(unpickled_state, key) == val)
