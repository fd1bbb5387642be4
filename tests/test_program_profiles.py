from datetime import date

import numpy as np
import pytest

from applicant_records import Applicant, DataInvariantViolation, Outcome, ProgramKey, ProgramProfile
from program_profiles import (
    ProgramStatistics,
    decision_epoch,
    offer_data,
    program_statistics,
    summarize_statistics,
    yield_data,
)


@pytest.fixture
def small_history():
    window = dict(firstofferdate=date(2021, 1, 13), lastdecisiondate=date(2021, 4, 15))
    return {
        ProgramKey('NS', 2021): ProgramProfile(15, 15, 100, **window),
        ProgramKey('CB', 2021): ProgramProfile(5, 5, 40, **window),
    }


@pytest.fixture
def small_applicants():
    return [
        Applicant('NS', 2021, 0.0, 0.1, normdecidedate=0.1, accept=True),
        Applicant('NS', 2021, 0.0, 0.2, normdecidedate=0.5, accept=False),
        Applicant('NS', 2021, 0.0, 0.3, normdecidedate=0.9, accept=False),
        Applicant('NS', 2021, 0.0, 0.4, normdecidedate=1.0, accept=True),
        Applicant('NS', 2021, 0.2, 0.5),
        Applicant('CB', 2021, 0.0, 0.1),
    ]


def test_offer_data(small_applicants, small_history):
    assert offer_data(small_applicants, small_history) == {'NS': (5, 100), 'CB': (1, 40)}


def test_offer_data_requires_history(small_applicants):
    with pytest.raises(DataInvariantViolation):
        offer_data(small_applicants, {})


def test_decision_epoch():
    assert decision_epoch(0.0, 3) == 0
    assert decision_epoch(0.34, 3) == 1
    assert decision_epoch(1.0, 3) == 2
    assert decision_epoch(1.2, 3) == 2


def test_yield_data_whole_season(small_applicants):
    assert yield_data(small_applicants) == {'NS': Outcome(ndeclines=2, naccepts=2)}


def test_yield_data_epochs(small_applicants):
    epochs = yield_data(small_applicants, nepochs=3)['NS']
    assert epochs == (Outcome(0, 1), Outcome(1, 0), Outcome(1, 1))


def test_program_statistics(small_applicants, small_history):
    statistics = program_statistics(small_applicants, small_history, nepochs=3)
    ns = statistics['NS']
    assert ns.selectivity == pytest.approx(5 / 100)
    np.testing.assert_allclose(ns.yield_vector, [0.25, 0, 0, 0.25, 0.25, 0.25])
    assert ns.yield_vector.sum() == pytest.approx(1)


def test_program_without_decisions_has_undefined_yield(small_applicants, small_history):
    cb = program_statistics(small_applicants, small_history)['CB']
    assert cb.selectivity == pytest.approx(1 / 40)
    assert cb.yield_vector is None


def test_selectivity_undefined_without_applicants():
    stats = ProgramStatistics('NS', 0, 0, (Outcome(),) * 3)
    assert stats.selectivity is None


def test_statistics_only_use_earlier_seasons(applicants, program_history):
    statistics = program_statistics(applicants, program_history, season=2020)
    assert statistics['NS'].noffers == 45
    assert statistics['NS'].napplicants == 300
    assert statistics['NS'].ndecisions == 45


def test_summarize_statistics(small_applicants, small_history):
    rows = summarize_statistics(program_statistics(small_applicants, small_history))
    assert [row['program'] for row in rows] == ['CB', 'NS']
    assert rows[0]['yield'] is None
    assert rows[1]['yield'] == pytest.approx(0.5)
