"""
Admissions Yield Simulation - Parameter Tuning
===============================================
Chooses the four matching parameters (sigma_sel, sigma_yield, sigma_r,
sigma_t) from historical seasons. For every season except the earliest,
predictions are made for that season's applicants using only strictly
earlier seasons, and scored by the net log-likelihood:

    +log(p_j) if applicant j accepted, -log(p_j) if j declined

which rewards pushing p_j towards the correct extreme. A combination that
leaves any applicant under-supported (total match weight below
minfrac x number of past applicants) scores -inf for that season.

Each (parameter combination, season) pair is an independent unit of work;
units run in a process pool and their scores are summed into a 4-D array.
"""

import math
import os
from concurrent.futures import ProcessPoolExecutor

import numpy as np

from applicant_records import UndersupportedEstimate
from likelihood import applicant_probability
from program_profiles import DEFAULT_NEPOCHS, program_statistics
from similarity import cached_similarity, match_function

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_MINFRAC = 0.01
PROBABILITY_FLOOR = 1e-6
DEFAULT_UNDEFINED_YIELD = 'exclude'


def build_matcher(sigmas, statistics, undefined_yield=DEFAULT_UNDEFINED_YIELD):
    """Matching function for one parameter combination, with its own similarity cache."""
    sigma_sel, sigma_yield, sigma_r, sigma_t = sigmas
    progsim = cached_similarity(sigma_sel, sigma_yield, statistics, undefined_yield)
    return match_function(sigma_r=sigma_r, sigma_t=sigma_t, progsim=progsim)


def season_loglike(sigmas, applicants, past_applicants, statistics, minfrac=DEFAULT_MINFRAC,
                   undefined_yield=DEFAULT_UNDEFINED_YIELD):
    """
    Net log-likelihood of `applicants`' decisions for one parameter combination.

    `past_applicants` and `statistics` must come from seasons before the
    applicants' season. Each applicant is evaluated at its own offer date,
    so past applicants who had decided by then are not used. Applicants
    without a decision are skipped.
    """
    fmatch = build_matcher(sigmas, statistics, undefined_yield)
    total = 0.0
    for applicant in applicants:
        if applicant.accept is None:
            continue
        try:
            p = applicant_probability(fmatch, past_applicants, applicant, applicant.normofferdate,
                                      minfrac=minfrac)
        except UndersupportedEstimate:
            return -math.inf
        p = max(p, PROBABILITY_FLOOR)
        total += math.log(p) if applicant.accept else -math.log(p)
    return total


def season_datasets(applicants, program_history, nepochs=DEFAULT_NEPOCHS):
    """
    Split the history into per-season test sets.

    Returns {season: (test applicants, past applicants, statistics)} for
    every season with decided applicants and at least one decided applicant
    in an earlier season. History entries without offers are never scored.
    """
    seasons = sorted({a.season for a in applicants})
    datasets = {}
    for season in seasons:
        test = [a for a in applicants if a.season == season and a.accept is not None]
        past = [a for a in applicants if a.season < season]
        if not test or not any(a.accept is not None for a in past):
            continue
        datasets[season] = (test, past, program_statistics(past, program_history, nepochs))
    return datasets


def _score_unit(task, datasets, minfrac, undefined_yield):
    idx, sigmas, season = task
    test, past, statistics = datasets[season]
    return idx, season_loglike(sigmas, test, past, statistics, minfrac, undefined_yield)


# Per-process copy of the season data, installed once by the pool initializer.
_WORKER_STATE = {}


def _init_worker(datasets, minfrac, undefined_yield):
    _WORKER_STATE['args'] = (datasets, minfrac, undefined_yield)


def _score_unit_in_worker(task):
    return _score_unit(task, *_WORKER_STATE['args'])


def net_loglike(sigma_sels, sigma_yields, sigma_rs, sigma_ts, applicants, program_history,
                minfrac=DEFAULT_MINFRAC, nepochs=DEFAULT_NEPOCHS,
                undefined_yield=DEFAULT_UNDEFINED_YIELD, max_workers=None, verbose=False):
    """
    Evaluate the net log-likelihood on every combination of the sigma lists.

    Returns an array of shape (len(sigma_sels), len(sigma_yields),
    len(sigma_rs), len(sigma_ts)). Pick parameters with `best_parameters`.
    `max_workers=1` runs everything in this process.
    """
    grids = (list(sigma_sels), list(sigma_yields), list(sigma_rs), list(sigma_ts))
    shape = tuple(len(grid) for grid in grids)
    scores = np.zeros(shape)

    datasets = season_datasets(applicants, program_history, nepochs)
    tasks = [
        (idx, tuple(grid[i] for grid, i in zip(grids, idx)), season)
        for idx in np.ndindex(*shape)
        for season in datasets
    ]
    if verbose:
        print(f"Scoring {scores.size} combinations x {len(datasets)} seasons ({len(tasks)} units)...")

    if max_workers == 1 or len(tasks) <= 1:
        results = (_score_unit(task, datasets, minfrac, undefined_yield) for task in tasks)
        for n, (idx, value) in enumerate(results, 1):
            scores[idx] += value
            if verbose and n % 100 == 0:
                print(f"  Processed unit {n}/{len(tasks)}...")
        return scores

    workers = max_workers or os.cpu_count() or 1
    chunksize = max(1, len(tasks) // (4 * workers))
    with ProcessPoolExecutor(max_workers=workers, initializer=_init_worker,
                             initargs=(datasets, minfrac, undefined_yield)) as executor:
        for n, (idx, value) in enumerate(executor.map(_score_unit_in_worker, tasks, chunksize=chunksize), 1):
            scores[idx] += value
            if verbose and n % 100 == 0:
                print(f"  Processed unit {n}/{len(tasks)}...")
    return scores


def best_parameters(scores, sigma_sels, sigma_yields, sigma_rs, sigma_ts):
    """(sigma_sel, sigma_yield, sigma_r, sigma_t) at the maximum of `scores`."""
    scores = np.asarray(scores, dtype=float)
    if not np.isfinite(scores).any():
        raise UndersupportedEstimate("every parameter combination is under-supported; lower minfrac")
    idx = np.unravel_index(np.argmax(scores), scores.shape)
    grids = (sigma_sels, sigma_yields, sigma_rs, sigma_ts)
    return tuple(grid[i] for grid, i in zip(grids, idx))


def holdout_predictions(sigmas, applicants, program_history, season, minfrac=DEFAULT_MINFRAC,
                        nepochs=DEFAULT_NEPOCHS, undefined_yield=DEFAULT_UNDEFINED_YIELD):
    """
    Predictions for one season from strictly earlier seasons.

    Returns (probabilities, accepted, nskipped): arrays aligned over the
    season's decided applicants that could be estimated, and the number of
    under-supported applicants left out.
    """
    past = [a for a in applicants if a.season < season]
    test = [a for a in applicants if a.season == season and a.accept is not None]
    fmatch = build_matcher(sigmas, program_statistics(past, program_history, nepochs), undefined_yield)

    probabilities, accepted, nskipped = [], [], 0
    for applicant in test:
        try:
            p = applicant_probability(fmatch, past, applicant, applicant.normofferdate, minfrac=minfrac)
        except UndersupportedEstimate:
            nskipped += 1
            continue
        probabilities.append(p)
        accepted.append(int(applicant.accept))
    return np.array(probabilities), np.array(accepted, dtype=int), nskipped
