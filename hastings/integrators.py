"""Leapfrog integrator for simulation of Hamiltonian dynamics."""

import numpy as np
from hastings.errors import ConfigurationError
from hastings.utils import (
    as_state_array, check_dimension, check_positive, check_positive_int)


def leapfrog(pos, mom, grad_neg_log_dens, step_size, n_step, mass=1.,
             grad_init=None):
    r"""Simulate Hamiltonian dynamics with the leapfrog (Störmer-Verlet) scheme.

    For a Hamiltonian \(h(q, p) = u(q) + \sum_i p_i^2 / (2 m_i)\) performs
    `n_step` steps of size \(\epsilon\) as

      1. \(p \leftarrow p - \frac{\epsilon}{2} \nabla u(q)\)
      2. `n_step` times: \(q \leftarrow q + \frac{\epsilon}{m} p\) followed,
         except after the final position update, by
         \(p \leftarrow p - \epsilon \nabla u(q)\)
      3. \(p \leftarrow p - \frac{\epsilon}{2} \nabla u(q)\)

    which is equivalent to `n_step` composed symmetric half-step / full-step /
    half-step updates with the adjacent momentum half-steps merged. The
    resulting map is time-reversible and volume preserving, which the
    Metropolis acceptance step of Hamiltonian Monte Carlo relies on.

    No acceptance decision is made here. The input arrays are not modified.

    Args:
        pos (array): Initial position \(q\).
        mom (array): Initial momentum \(p\), same shape as `pos`.
        grad_neg_log_dens (Callable[[array], array]): Function returning the
            gradient of the potential energy \(u = -\log f\).
        step_size (float): Positive integrator step size \(\epsilon\).
        n_step (int): Positive number of integrator steps.
        mass (float or array): Positive scalar or per-dimension mass.
        grad_init (None or array): Gradient of the potential energy at `pos`
            if already computed, used in place of evaluating it again.

    Returns:
        pos (array): Final position.
        mom (array): Final momentum.
    """
    step_size = check_positive(step_size, 'step_size')
    n_step = check_positive_int(n_step, 'n_step')
    mass = check_positive(mass, 'mass')
    pos = as_state_array(pos)
    mom = as_state_array(mom)
    if pos.shape != mom.shape:
        raise ConfigurationError(
            f'Position shape {pos.shape} and momentum shape {mom.shape} do '
            f'not match.')
    check_dimension(mass, pos.shape[0], 'mass')

    def grad(q):
        g = np.asarray(grad_neg_log_dens(q), dtype=np.float64)
        if g.size != q.size:
            raise ConfigurationError(
                f'Gradient shape {g.shape} does not match position shape '
                f'{q.shape}.')
        return g.reshape(q.shape)

    if grad_init is None:
        grad_init = grad(pos)
    else:
        grad_init = np.asarray(grad_init, dtype=np.float64)
        if grad_init.shape != pos.shape:
            raise ConfigurationError(
                f'Gradient shape {grad_init.shape} does not match position '
                f'shape {pos.shape}.')
    mom = mom - 0.5 * step_size * grad_init
    for s in range(n_step):
        pos = pos + (step_size / mass) * mom
        if s != n_step - 1:
            mom = mom - step_size * grad(pos)
    mom = mom - 0.5 * step_size * grad(pos)
    return pos, mom


class LeapfrogIntegrator(object):
    """Leapfrog integrator acting on chain states of a Hamiltonian system.

    The step size is not tuned automatically. Too small a step size results in
    many gradient evaluations per unit of simulated time and slow exploration,
    while too large a step size results in poor energy conservation and so a
    low acceptance probability.
    """

    def __init__(self, system, step_size):
        """
        Args:
            system (hastings.systems.EuclideanMetricSystem): Hamiltonian
                system to integrate the dynamics of.
            step_size (float): Positive integrator time step.
        """
        self.system = system
        self.step_size = step_size

    @property
    def step_size(self):
        """Integrator time step."""
        return self._step_size

    @step_size.setter
    def step_size(self, value):
        self._step_size = check_positive(value, 'step_size')

    def integrate(self, state, n_step):
        """Integrate dynamics for a number of steps from a supplied state.

        Args:
            state (hastings.states.ChainState): State with position and
                momentum to start from. Not modified.
            n_step (int): Number of integrator steps.

        Returns:
            new_state (hastings.states.ChainState): New state object at end
                of trajectory.
        """
        new_state = state.copy()
        new_state.pos, new_state.mom = leapfrog(
            state.pos, state.mom, self.system.target.gradient,
            self.step_size, n_step, self.system.mass,
            grad_init=self.system.grad_neg_log_dens(state))
        return new_state
