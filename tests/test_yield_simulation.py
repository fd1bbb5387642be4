from collections import Counter

import numpy as np
import pytest

from applicant_records import Applicant, DegenerateSamplingError
from likelihood import match_likelihood
from similarity import match_function
from yield_simulation import parallel_simulation, run_simulation, select_applicant, simulate_from_analogs

PMATRICS = np.array([0.9, 0.5, 0.5, 0.3, 0.2, 0.75, 0.1, 0.6])


def test_run_simulation_shape_and_range():
    totals = run_simulation(PMATRICS, 50, rng=0)
    assert totals.shape == (50,)
    assert totals.min() >= 0 and totals.max() <= len(PMATRICS)


def test_run_simulation_extremes():
    np.testing.assert_array_equal(run_simulation([1, 1, 0], 20, rng=3), np.full(20, 2))
    assert len(run_simulation([], 5)) == 5


def test_run_simulation_converges_to_expected_total():
    n_trials = 20000
    totals = run_simulation(PMATRICS, n_trials, rng=np.random.default_rng(42))
    variance = np.sum(PMATRICS * (1 - PMATRICS))
    tolerance = 5 * np.sqrt(variance / n_trials)
    assert abs(totals.mean() - PMATRICS.sum()) < tolerance
    assert totals.var() == pytest.approx(variance, rel=0.05)


def test_run_simulation_rejects_bad_probabilities():
    with pytest.raises(ValueError):
        run_simulation([0.5, 1.2])
    with pytest.raises(ValueError):
        run_simulation([0.5, float('nan')])


def test_run_simulation_is_reproducible():
    np.testing.assert_array_equal(run_simulation(PMATRICS, 100, rng=7), run_simulation(PMATRICS, 100, rng=7))


def test_parallel_simulation_serial_and_pooled():
    serial = parallel_simulation(PMATRICS, 1000, n_batches=4, seed=11, max_workers=1)
    pooled = parallel_simulation(PMATRICS, 1000, n_batches=4, seed=11, max_workers=2)
    assert serial.shape == (1000,)
    np.testing.assert_array_equal(serial, pooled)
    assert abs(serial.mean() - PMATRICS.sum()) < 0.2


def test_parallel_batches_are_independent():
    totals = parallel_simulation(PMATRICS, 4000, n_batches=4, seed=5, max_workers=1)
    batches = totals.reshape(4, 1000)
    assert not any(np.array_equal(batches[0], batch) for batch in batches[1:])


def test_select_applicant_follows_weights():
    past = ['a', 'b', 'c', 'd']
    likelihood = np.array([0.0, 1.0, 0.0, 3.0])
    rng = np.random.default_rng(1)
    counts = Counter(select_applicant(np.cumsum(likelihood), past, rng) for _ in range(4000))
    assert set(counts) == {'b', 'd'}
    assert counts['d'] / 4000 == pytest.approx(0.75, abs=0.03)


def test_select_applicant_degenerate():
    with pytest.raises(DegenerateSamplingError):
        select_applicant(np.zeros(3), ['a', 'b', 'c'])
    with pytest.raises(DegenerateSamplingError):
        select_applicant(np.array([]), [])


def test_simulate_from_analogs_matches_probability(past_applicants):
    fmatch = match_function()
    pending = [Applicant('NS', 2021, 0.0, 0.1), Applicant('CB', 2021, 0.0, 0.2)]
    likelihoods = [match_likelihood(fmatch, past_applicants, a, 0.0) for a in pending]
    expected = 0.0
    for likelihood in likelihoods:
        accepted = np.array([bool(a.accept) for a in past_applicants], dtype=float)
        expected += np.dot(likelihood, accepted) / likelihood.sum()

    totals = simulate_from_analogs(likelihoods, past_applicants, n_trials=3000, rng=2)
    assert totals.shape == (3000,)
    assert totals.mean() == pytest.approx(expected, abs=0.06)


def test_parallel_simulation_rejects_negative_trials():
    with pytest.raises(ValueError):
        parallel_simulation(PMATRICS, -5, max_workers=1)
