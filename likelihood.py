"""
Admissions Yield Simulation - Match Likelihood and Matriculation Probability
=============================================================================
For one current applicant, weight every past applicant by similarity
(`match_likelihood`) and turn those weights plus the past decisions into a
probability of accepting the offer (`matriculation_probability`).

The sum of the likelihood vector is a rough count of the past applicants
treated as good matches. If it is tiny the matching criteria are too strict;
if it is close to the number of past applicants, everyone is matched.
"""

from datetime import date

import numpy as np

from applicant_records import DataInvariantViolation, UndersupportedEstimate, normdate


def normalized_time(tnow, applicant, program_history=None):
    """Convert `tnow` to the applicant's normalized season time if it is a date."""
    if tnow is None or not isinstance(tnow, date):
        return tnow
    if program_history is None:
        raise ValueError("program_history is required when tnow is a date")
    try:
        profile = program_history[applicant.key]
    except KeyError:
        raise DataInvariantViolation(f"no program history for {applicant.key}") from None
    return normdate(tnow, profile)


def match_likelihood(fmatch, past_applicants, applicant, tnow, program_history=None):
    """
    Compute the likelihood of each of `past_applicants` matching `applicant`.

    `tnow` is the current time, either normalized (see `normdate`) or a date
    together with `program_history`. Past applicants who had already decided
    by `tnow` get weight 0. Returns a float array aligned with
    `past_applicants`.
    """
    tnow = normalized_time(tnow, applicant, program_history)
    return np.array([fmatch(applicant, past, tnow) for past in past_applicants], dtype=float)


def decision_arrays(past_applicants):
    """(resolved mask, accept indicator) arrays for a list of past applicants."""
    resolved = np.array([a.accept is not None for a in past_applicants], dtype=bool)
    accepted = np.array([bool(a.accept) for a in past_applicants], dtype=float)
    return resolved, accepted


def matriculation_probability(likelihood, past_applicants, minfrac=0.0):
    """
    Probability that an applicant weighted by `likelihood` accepts the offer.

    Only past applicants with a known decision take part. Raises
    UndersupportedEstimate when their total weight is zero or smaller than
    `minfrac` times their number.
    """
    likelihood = np.asarray(likelihood, dtype=float)
    if likelihood.shape != (len(past_applicants),):
        raise ValueError(
            f"likelihood has shape {likelihood.shape}, expected ({len(past_applicants)},)"
        )
    resolved, accepted = decision_arrays(past_applicants)
    weights = likelihood[resolved]
    total = weights.sum()
    nresolved = int(resolved.sum())
    if not total > 0 or total < minfrac * nresolved:
        raise UndersupportedEstimate(
            f"total match weight {total:.4g} is below {minfrac} x {nresolved} past applicants"
        )
    p = float(np.dot(weights, accepted[resolved]) / total)
    return min(max(p, 0.0), 1.0)


def applicant_probability(fmatch, past_applicants, applicant, tnow, program_history=None, minfrac=0.0):
    """match_likelihood followed by matriculation_probability."""
    likelihood = match_likelihood(fmatch, past_applicants, applicant, tnow, program_history)
    return matriculation_probability(likelihood, past_applicants, minfrac)
