from datetime import date

import numpy as np
import pytest

from applicant_records import Applicant, UndersupportedEstimate
from likelihood import applicant_probability, match_likelihood, matriculation_probability
from similarity import match_function


@pytest.fixture
def weighted_analogs():
    """Six past offers and their similarity to one test applicant."""
    past = [
        Applicant('A', 2020, 0.0, 1 / 10, normdecidedate=0.5, accept=False),
        Applicant('A', 2020, 0.0, 2 / 10, normdecidedate=0.5, accept=True),
        Applicant('A', 2020, 0.0, 3 / 10, normdecidedate=0.5, accept=False),
        Applicant('A', 2020, 0.0, 4 / 10, normdecidedate=0.5, accept=True),
        Applicant('B', 2020, 0.0, 1 / 10, normdecidedate=0.5, accept=True),
        Applicant('B', 2020, 0.0, 2 / 10, normdecidedate=0.5, accept=False),
    ]
    likelihood = np.array([0.6, 1.0, 0.6, 0.4, 0.1, 0.15])
    return past, likelihood


def test_probability_is_weighted_accept_fraction(weighted_analogs):
    past, likelihood = weighted_analogs
    p = matriculation_probability(likelihood, past)
    assert p == pytest.approx((1.0 + 0.4 + 0.1) / (0.6 + 1.0 + 0.6 + 0.4 + 0.1 + 0.15))
    assert p == pytest.approx(0.53, abs=0.01)


def test_undecided_past_applicants_are_ignored(weighted_analogs):
    past, likelihood = weighted_analogs
    past = past + [Applicant('A', 2020, 0.0, 0.5)]
    likelihood = np.append(likelihood, 5.0)
    assert matriculation_probability(likelihood, past) == pytest.approx(1.5 / 2.85)


def test_zero_weight_is_undersupported(weighted_analogs):
    past, _ = weighted_analogs
    with pytest.raises(UndersupportedEstimate):
        matriculation_probability(np.zeros(len(past)), past)


def test_minfrac_threshold(weighted_analogs):
    past, likelihood = weighted_analogs
    # total weight 2.85 out of 6 decided applicants
    assert matriculation_probability(likelihood, past, minfrac=0.4) == pytest.approx(1.5 / 2.85)
    with pytest.raises(UndersupportedEstimate):
        matriculation_probability(likelihood, past, minfrac=0.5)


def test_length_mismatch(weighted_analogs):
    past, likelihood = weighted_analogs
    with pytest.raises(ValueError):
        matriculation_probability(likelihood[:-1], past)


def test_probability_bounds(past_applicants, current_applicants):
    fmatch = match_function(sigma_r=0.05, sigma_t=0.3)
    for applicant in current_applicants[:20]:
        likelihood = match_likelihood(fmatch, past_applicants, applicant, applicant.normofferdate)
        p = matriculation_probability(likelihood, past_applicants)
        assert 0 <= p <= 1


def test_match_likelihood_masks_decided(past_applicants, current_applicants):
    fmatch = match_function()
    applicant = current_applicants[0]
    tnow = 0.5
    likelihood = match_likelihood(fmatch, past_applicants, applicant, tnow)
    assert likelihood.shape == (len(past_applicants),)
    for weight, past in zip(likelihood, past_applicants):
        if past.normdecidedate <= tnow or past.program != applicant.program:
            assert weight == 0
        else:
            assert weight == 1


def test_match_likelihood_without_reference_time(past_applicants, current_applicants):
    fmatch = match_function()
    applicant = current_applicants[0]
    likelihood = match_likelihood(fmatch, past_applicants, applicant, None)
    same_program = [p.program == applicant.program for p in past_applicants]
    np.testing.assert_array_equal(likelihood, np.array(same_program, dtype=float))


def test_match_likelihood_accepts_dates(past_applicants, current_applicants, program_history):
    fmatch = match_function()
    applicant = current_applicants[0]
    by_date = match_likelihood(fmatch, past_applicants, applicant, date(2021, 2, 28),
                               program_history=program_history)
    tnow = (date(2021, 2, 28) - date(2021, 1, 13)).days / (date(2021, 4, 15) - date(2021, 1, 13)).days
    np.testing.assert_array_equal(by_date, match_likelihood(fmatch, past_applicants, applicant, tnow))
    with pytest.raises(ValueError):
        match_likelihood(fmatch, past_applicants, applicant, date(2021, 2, 28))


def test_applicant_probability_late_in_season(past_applicants, current_applicants):
    fmatch = match_function()
    applicant = current_applicants[0]
    with pytest.raises(UndersupportedEstimate):
        applicant_probability(fmatch, past_applicants, applicant, 1.0)
