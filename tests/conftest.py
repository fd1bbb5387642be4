"""Synthetic admissions history shared by the tests."""

from datetime import date

import numpy as np
import pytest

from applicant_records import Applicant, ProgramKey, ProgramProfile

SEASONS = [2019, 2020, 2021]
# program -> (target, napplicants)
PROGRAMS = {'NS': (15, 300), 'CB': (5, 160)}


def make_program_history():
    history = {}
    for season in SEASONS:
        for program, (target, napplicants) in PROGRAMS.items():
            history[ProgramKey(program, season)] = ProgramProfile(
                target_raw=target,
                target_corrected=target,
                napplicants=napplicants,
                firstofferdate=date(season, 1, 13),
                lastdecisiondate=date(season, 4, 15),
                nmatriculants=target,
            )
    return history


def make_applicants(seed=0):
    """Three offers per slot; top-ranked applicants decline more often."""
    rng = np.random.default_rng(seed)
    applicants = []
    for season in SEASONS:
        for program, (target, napplicants) in PROGRAMS.items():
            noffers = 3 * target
            ranks = np.sort(rng.choice(np.arange(1, napplicants // 2), size=noffers, replace=False))
            for rank in ranks:
                normrank = rank / napplicants
                offer = 0.0 if rng.random() < 0.8 else float(rng.uniform(0.3, 0.9))
                accept = bool(rng.random() < 0.2 + normrank)
                decide = float(offer + rng.uniform(0.01, 1 - offer))
                applicants.append(Applicant(
                    program=program,
                    season=season,
                    normofferdate=offer,
                    normrank=float(normrank),
                    normdecidedate=min(decide, 1.0),
                    accept=accept,
                ))
    return applicants


@pytest.fixture
def program_history():
    return make_program_history()


@pytest.fixture
def applicants():
    return make_applicants()


@pytest.fixture
def past_applicants(applicants):
    return [a for a in applicants if a.season < 2021]


@pytest.fixture
def current_applicants(applicants):
    return [a for a in applicants if a.season == 2021]
