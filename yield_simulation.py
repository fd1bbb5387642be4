"""
Admissions Yield Simulation - Monte Carlo Simulation
=====================================================
Simulates the total number of matriculants given each pending applicant's
probability of accepting, and draws past applicants as stand-ins for a
current one in proportion to their match likelihood.
"""

import os
from concurrent.futures import ProcessPoolExecutor

import numpy as np

from applicant_records import DegenerateSamplingError

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_N_TRIALS = 100


def _as_generator(rng):
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def _check_probabilities(pmatrics):
    pmatrics = np.asarray(pmatrics, dtype=float)
    if pmatrics.ndim != 1:
        raise ValueError("pmatrics must be one-dimensional")
    if np.any(np.isnan(pmatrics)) or np.any((pmatrics < 0) | (pmatrics > 1)):
        raise ValueError("matriculation probabilities must lie in [0, 1]")
    return pmatrics


def run_simulation(pmatrics, n_trials=DEFAULT_N_TRIALS, rng=None):
    """
    Simulate `n_trials` admissions outcomes.

    Each trial draws one independent accept/decline per candidate, with
    candidate i accepting with probability `pmatrics[i]`, and records the
    total number of matriculants. `rng` is a numpy Generator or a seed.
    Returns an int array of length `n_trials`.
    """
    pmatrics = _check_probabilities(pmatrics)
    if n_trials < 0:
        raise ValueError(f"n_trials must be non-negative, got {n_trials}")
    rng = _as_generator(rng)
    draws = rng.random((n_trials, len(pmatrics)))
    return (draws < pmatrics).sum(axis=1)


def _simulation_batch(args):
    pmatrics, n_trials, seed_seq = args
    return run_simulation(pmatrics, n_trials, np.random.default_rng(seed_seq))


def parallel_simulation(pmatrics, n_trials=DEFAULT_N_TRIALS, n_batches=None, seed=None, max_workers=None):
    """
    run_simulation split into batches that run in worker processes.

    Every batch gets its own random stream spawned from one SeedSequence, so
    batches are independent and the result is reproducible for a given seed.
    """
    pmatrics = _check_probabilities(pmatrics)
    if n_trials < 0:
        raise ValueError(f"n_trials must be non-negative, got {n_trials}")
    if n_batches is None:
        n_batches = max_workers or os.cpu_count() or 1
    n_batches = max(1, min(n_batches, n_trials)) if n_trials else 1
    sizes = [len(chunk) for chunk in np.array_split(np.arange(n_trials), n_batches)]
    seeds = np.random.SeedSequence(seed).spawn(n_batches)
    tasks = [(pmatrics, size, seq) for size, seq in zip(sizes, seeds)]

    if max_workers == 1:
        results = [_simulation_batch(task) for task in tasks]
    else:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(_simulation_batch, tasks))
    return np.concatenate(results) if results else np.zeros(0, dtype=int)


def select_applicant(clikelihood, past_applicants, rng=None):
    """
    Select a past applicant at random, weighted by likelihood.

    `clikelihood` is the cumulative sum of a likelihood vector from
    `match_likelihood`. The draw u ~ U[0, total) picks the first index whose
    cumulative weight exceeds u.
    """
    clikelihood = np.asarray(clikelihood, dtype=float)
    if len(clikelihood) != len(past_applicants):
        raise ValueError("clikelihood and past_applicants differ in length")
    if len(clikelihood) == 0 or not clikelihood[-1] > 0:
        raise DegenerateSamplingError("cannot select from zero total likelihood")
    rng = _as_generator(rng)
    u = rng.uniform(0, clikelihood[-1])
    idx = int(np.searchsorted(clikelihood, u, side='right'))
    return past_applicants[min(idx, len(past_applicants) - 1)]


def simulate_from_analogs(likelihoods, past_applicants, n_trials=DEFAULT_N_TRIALS, rng=None):
    """
    Simulate totals by resampling past applicants instead of using probabilities.

    `likelihoods` holds one likelihood vector per pending applicant. In each
    trial every pending applicant is replaced by a past applicant drawn with
    `select_applicant` (restricted to past applicants with a known decision)
    and the accepts are counted.
    """
    rng = _as_generator(rng)
    resolved = [i for i, a in enumerate(past_applicants) if a.accept is not None]
    analogs = [past_applicants[i] for i in resolved]
    cumulative = [np.cumsum(np.asarray(lk, dtype=float)[resolved]) for lk in likelihoods]

    totals = np.zeros(n_trials, dtype=int)
    for trial in range(n_trials):
        totals[trial] = sum(
            bool(select_applicant(clk, analogs, rng).accept) for clk in cumulative
        )
    return totals
