from math import inf
import numpy as np
import pytest
import hastings

SEED = 3046987125


def std_normal_dens(x):
    return np.exp(-0.5 * np.sum(x**2))


def std_normal_log_dens(x):
    return -0.5 * np.sum(x**2)


def std_normal_grad_neg_log_dens(x):
    return x


def exponential_dens(x):
    return np.exp(-x[0]) if x[0] >= 0 else 0.


@pytest.fixture
def rng():
    return np.random.default_rng(SEED)


def test_target_requires_exactly_one_density():
    with pytest.raises(hastings.errors.ConfigurationError):
        hastings.targets.Target()
    with pytest.raises(hastings.errors.ConfigurationError):
        hastings.targets.Target(
            dens=std_normal_dens, log_dens=std_normal_log_dens)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        hastings.targets.Target()


def test_target_forms():
    target = hastings.targets.Target(dens=std_normal_dens)
    assert not target.log_form
    assert not target.has_gradient
    target = hastings.targets.Target(
        log_dens=std_normal_log_dens,
        grad_neg_log_dens=std_normal_grad_neg_log_dens)
    assert target.log_form
    assert target.has_gradient


class TargetTests:

    def test_evaluate_consistent_with_log_evaluate(self, target, rng):
        for _ in range(5):
            pos = rng.standard_normal(3)
            assert np.isclose(
                np.log(target.evaluate(pos)), target.log_evaluate(pos))
            assert np.isclose(
                target.neg_log_evaluate(pos), 0.5 * np.sum(pos**2))

    def test_ratio(self, target, rng):
        pos_1, pos_2 = rng.standard_normal((2, 3))
        assert np.isclose(
            target.ratio(pos_1, pos_2),
            std_normal_dens(pos_1) / std_normal_dens(pos_2))
        assert np.isclose(
            target.log_ratio(pos_1, pos_2),
            std_normal_log_dens(pos_1) - std_normal_log_dens(pos_2))

    def test_ratio_precomputed_values(self, target, rng):
        pos_1, pos_2 = rng.standard_normal((2, 3))
        val_1 = target.native_evaluate(pos_1)
        val_2 = target.native_evaluate(pos_2)
        assert target.ratio(pos_1, pos_2, val_1, val_2) == target.ratio(
            pos_1, pos_2)

    def test_in_support(self, target, rng):
        assert target.in_support(target.native_evaluate(np.zeros(3)))


class TestDensityTarget(TargetTests):

    @pytest.fixture
    def target(self):
        return hastings.targets.Target(dens=std_normal_dens)

    def test_ratio_is_direct_division(self, target):
        pos_1, pos_2 = np.array([0.3, -0.2, 1.]), np.array([1., 0.5, -2.])
        assert target.ratio(pos_1, pos_2) == (
            std_normal_dens(pos_1) / std_normal_dens(pos_2))


class TestLogDensityTarget(TargetTests):

    @pytest.fixture
    def target(self):
        return hastings.targets.Target(
            log_dens=std_normal_log_dens,
            grad_neg_log_dens=std_normal_grad_neg_log_dens)

    def test_gradient(self, target, rng):
        pos = rng.standard_normal(3)
        assert np.allclose(target.gradient(pos), pos)


def test_zero_density_outside_support():
    target = hastings.targets.Target(dens=exponential_dens)
    assert target.evaluate(np.array([-1.])) == 0.
    assert target.log_evaluate(np.array([-1.])) == -inf
    assert not target.in_support(target.native_evaluate(np.array([-1.])))


def test_ratio_zero_denominator_is_inf():
    target = hastings.targets.Target(dens=exponential_dens)
    assert target.ratio(np.array([1.]), np.array([-1.])) == inf
    log_target = hastings.targets.Target(
        log_dens=lambda x: -x[0] if x[0] >= 0 else -inf)
    assert log_target.ratio(np.array([1.]), np.array([-1.])) == inf
    assert log_target.log_ratio(np.array([1.]), np.array([-1.])) == inf


def test_ratio_zero_numerator_is_zero():
    target = hastings.targets.Target(dens=exponential_dens)
    assert target.ratio(np.array([-1.]), np.array([1.])) == 0.
    assert target.log_ratio(np.array([-1.]), np.array([1.])) == -inf


@pytest.mark.parametrize('bad_val', [np.nan, -1., inf])
def test_invalid_density_raises(bad_val):
    target = hastings.targets.Target(dens=lambda x: bad_val)
    with pytest.raises(hastings.errors.NumericEvaluationError):
        target.evaluate(np.zeros(1))


@pytest.mark.parametrize('bad_val', [np.nan, inf])
def test_invalid_log_density_raises(bad_val):
    target = hastings.targets.Target(log_dens=lambda x: bad_val)
    with pytest.raises(hastings.errors.NumericEvaluationError):
        target.log_evaluate(np.zeros(1))


def test_non_scalar_density_raises():
    target = hastings.targets.Target(dens=lambda x: np.ones(2))
    with pytest.raises(hastings.errors.ConfigurationError):
        target.evaluate(np.zeros(2))


def test_gradient_without_function_raises():
    target = hastings.targets.Target(log_dens=std_normal_log_dens)
    with pytest.raises(hastings.errors.ConfigurationError):
        target.gradient(np.zeros(2))


def test_gradient_wrong_shape_raises():
    target = hastings.targets.Target(
        log_dens=std_normal_log_dens, grad_neg_log_dens=lambda x: np.ones(3))
    with pytest.raises(hastings.errors.ConfigurationError):
        target.gradient(np.zeros(2))


def test_non_finite_gradient_raises():
    target = hastings.targets.Target(
        log_dens=std_normal_log_dens,
        grad_neg_log_dens=lambda x: np.full(x.shape, np.nan))
    with pytest.raises(hastings.errors.NumericEvaluationError):
        target.gradient(np.zeros(2))
