from math import inf
import numpy as np
import pytest
from scipy import stats
import hastings

SEED = 3046987125


@pytest.fixture
def rng():
    return np.random.default_rng(SEED)


class ProposalTests:

    def test_draw_shape(self, proposal, pos, rng):
        pos_prop = proposal.draw(pos, rng)
        assert pos_prop.shape == pos.shape
        assert np.all(np.isfinite(pos_prop))

    def test_draw_does_not_modify_pos(self, proposal, pos, rng):
        pos_copy = pos.copy()
        proposal.draw(pos, rng)
        assert np.all(pos == pos_copy)

    def test_correction_consistent_with_log_correction(
            self, proposal, pos, rng):
        pos_prop = proposal.draw(pos, rng)
        assert np.isclose(
            np.log(proposal.correction(pos, pos_prop)),
            proposal.log_correction(pos, pos_prop))


class SymmetricProposalTests(ProposalTests):

    def test_is_symmetric(self, proposal):
        assert proposal.is_symmetric

    def test_correction_is_one(self, proposal, pos, rng):
        pos_prop = proposal.draw(pos, rng)
        assert proposal.correction(pos, pos_prop) == 1.
        assert proposal.log_correction(pos, pos_prop) == 0.


class AsymmetricProposalTests(ProposalTests):

    def test_is_not_symmetric(self, proposal):
        assert not proposal.is_symmetric

    def test_correction_is_density_ratio(self, proposal, pos, rng):
        pos_prop = proposal.draw(pos, rng)
        assert np.isclose(
            proposal.correction(pos, pos_prop),
            proposal.density(pos, pos_prop) /
            proposal.density(pos_prop, pos))


class TestGaussianRandomWalkProposal(SymmetricProposalTests):

    @pytest.fixture(params=('scalar', 'vector', 'matrix'))
    def proposal(self, request):
        if request.param == 'scalar':
            return hastings.proposals.GaussianRandomWalkProposal(0.5)
        elif request.param == 'vector':
            return hastings.proposals.GaussianRandomWalkProposal(
                np.array([0.5, 1., 2.]))
        else:
            return hastings.proposals.GaussianRandomWalkProposal(
                np.array([[1., 0.5, 0.], [0.5, 1., 0.], [0., 0., 2.]]))

    @pytest.fixture
    def pos(self):
        return np.array([0.5, -1., 2.])

    def test_density_not_defined(self, proposal, pos):
        with pytest.raises(NotImplementedError):
            proposal.density(pos, pos)

    def test_increment_moments(self, rng):
        proposal = hastings.proposals.GaussianRandomWalkProposal(
            np.array([0.5, 2.]))
        pos = np.array([1., -1.])
        increments = np.stack(
            [proposal.draw(pos, rng) - pos for _ in range(5000)])
        assert np.allclose(increments.mean(0), 0., atol=0.1)
        assert np.allclose(increments.std(0), [0.5, 2.], rtol=0.05)

    def test_check_dimension(self, proposal):
        proposal.check_dimension(3)
        with pytest.raises(hastings.errors.ConfigurationError):
            hastings.proposals.GaussianRandomWalkProposal(
                np.ones(2)).check_dimension(3)

    @pytest.mark.parametrize(
        'scale', [0., -1., np.inf, np.array([1., 0.]),
                  np.array([[1., 2.], [2., 1.]]),
                  np.array([[1., 0.5], [0., 1.]])])
    def test_invalid_scale_raises(self, scale):
        with pytest.raises(hastings.errors.ConfigurationError):
            hastings.proposals.GaussianRandomWalkProposal(scale)


class TestUniformRandomWalkProposal(SymmetricProposalTests):

    @pytest.fixture
    def proposal(self):
        return hastings.proposals.UniformRandomWalkProposal(0.25)

    @pytest.fixture
    def pos(self):
        return np.array([3., -2.])

    def test_draws_within_box(self, proposal, pos, rng):
        for _ in range(100):
            assert np.all(np.abs(proposal.draw(pos, rng) - pos) <= 0.25)


class TestIndependentGaussianProposal(AsymmetricProposalTests):

    @pytest.fixture
    def proposal(self):
        return hastings.proposals.IndependentGaussianProposal(
            np.array([1., -1.]), np.array([0.5, 2.]))

    @pytest.fixture
    def pos(self):
        return np.array([0.2, 0.3])

    def test_density_matches_scipy(self, proposal, pos):
        expected = stats.multivariate_normal(
            [1., -1.], np.diag([0.5, 2.])).pdf(pos)
        assert np.isclose(proposal.density(pos, np.zeros(2)), expected)

    def test_check_dimension(self, proposal):
        with pytest.raises(hastings.errors.ConfigurationError):
            proposal.check_dimension(3)


class TestLogNormalRandomWalkProposal(AsymmetricProposalTests):

    @pytest.fixture
    def proposal(self):
        return hastings.proposals.LogNormalRandomWalkProposal(0.5)

    @pytest.fixture
    def pos(self):
        return np.array([0.5, 2.])

    def test_draws_positive(self, proposal, pos, rng):
        for _ in range(100):
            assert np.all(proposal.draw(pos, rng) > 0)

    def test_correction_is_position_ratio(self, proposal, pos, rng):
        pos_prop = proposal.draw(pos, rng)
        assert np.isclose(
            proposal.correction(pos, pos_prop), np.prod(pos_prop / pos))

    def test_non_positive_origin_has_zero_density(self, proposal):
        assert proposal.density(np.ones(2), np.array([-1., 1.])) == 0.
        assert proposal.log_density(np.ones(2), np.array([-1., 1.])) == -inf


class TestAsymmetricFunctionProposal(AsymmetricProposalTests):

    @pytest.fixture
    def proposal(self):

        def draw(pos, rng):
            return pos + 0.5 + rng.standard_normal(pos.shape)

        def density(pos_to, pos_from):
            return np.prod(stats.norm.pdf(pos_to, loc=pos_from + 0.5))

        return hastings.proposals.FunctionProposal(draw, density)

    @pytest.fixture
    def pos(self):
        return np.array([0., 1.])


class TestSymmetricFunctionProposal(SymmetricProposalTests):

    @pytest.fixture
    def proposal(self):
        return hastings.proposals.FunctionProposal(
            lambda pos, rng: pos + rng.standard_normal(pos.shape))

    @pytest.fixture
    def pos(self):
        return np.array([0., 1.])


def test_asymmetric_function_proposal_requires_density():
    with pytest.raises(hastings.errors.ConfigurationError):
        hastings.proposals.FunctionProposal(
            lambda pos, rng: pos, symmetric=False)


class _DrawOnlyProposal(hastings.proposals.Proposal):

    def draw(self, pos, rng):
        return pos + 1.


def test_asymmetric_proposal_without_density_raises():
    proposal = _DrawOnlyProposal()
    pos, pos_prop = np.zeros(2), np.ones(2)
    with pytest.raises(NotImplementedError, match='density'):
        proposal.correction(pos, pos_prop)
    with pytest.raises(NotImplementedError, match='density'):
        proposal.log_correction(pos, pos_prop)


def test_asymmetric_proposal_with_only_log_density():

    class _LogDensityProposal(_DrawOnlyProposal):

        def log_density(self, pos_to, pos_from):
            return float(np.sum(stats.norm.logpdf(pos_to, loc=pos_from + 1.)))

    proposal = _LogDensityProposal()
    pos, pos_prop = np.zeros(2), np.ones(2)
    assert np.isclose(
        proposal.density(pos_prop, pos),
        np.prod(stats.norm.pdf(pos_prop, loc=pos + 1.)))
    assert np.isclose(
        proposal.correction(pos, pos_prop),
        np.prod(stats.norm.pdf(pos, loc=pos_prop + 1.)) /
        np.prod(stats.norm.pdf(pos_prop, loc=pos + 1.)))
