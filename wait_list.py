"""
Admissions Yield Simulation - Program Yield and Wait-List Priority
===================================================================
Combines per-applicant matriculation probabilities into per-program
predictions of class size and decides which program should receive the next
wait-list offer.

For independent applicants with probabilities p_i the number of
matriculants has mean sum(p_i) and variance sum(p_i (1 - p_i)). Priority is
the predicted shortfall measured in units of Poisson noise on the target,
(target - mean) / sqrt(target), so the program with the most significant
deficit is served first.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.stats import norm

from applicant_records import DataInvariantViolation, ProgramKey
from likelihood import applicant_probability, normalized_time


@dataclass(frozen=True)
class ProgramYieldPrediction:
    """
    Mid-season prediction for one program.

    mean, stddev: predicted number of matriculants
    priority:     claim on the next wait-list offer (highest goes first)
    poutcome:     two-tailed p-value of the actual outcome, if one was supplied
    """
    mean: float
    stddev: float
    priority: float
    poutcome: Optional[float] = None


def yield_moments(probabilities):
    """Mean and variance of a sum of independent Bernoulli draws."""
    p = np.asarray(probabilities, dtype=float)
    return float(p.sum()), float(np.sum(p * (1 - p)))


def outcome_pvalue(actual, mean, variance):
    """Two-tailed p-value of `actual` under N(mean, variance)."""
    if variance <= 0:
        return 1.0 if math.isclose(actual, mean) else 0.0
    z = abs(actual - mean) / math.sqrt(variance)
    return float(2 * norm.sf(z))


def predict_program_yield(probabilities, target_corrected, future_probabilities=(), actual=None):
    """
    Predict one program's class from its applicants' matriculation probabilities.

    `future_probabilities` are applicants who received offers after the
    point of prediction (later wait-list offers); they do not affect the
    prediction or priority but are included when scoring `actual`.
    """
    mean, variance = yield_moments(probabilities)
    priority = (target_corrected - mean) / math.sqrt(max(target_corrected, 1))

    poutcome = None
    if actual is not None:
        future_mean, future_variance = yield_moments(future_probabilities)
        poutcome = outcome_pvalue(actual, mean + future_mean, variance + future_variance)
    return ProgramYieldPrediction(
        mean=mean,
        stddev=math.sqrt(variance),
        priority=priority,
        poutcome=poutcome,
    )


def current_probability(fmatch, past_applicants, applicant, tnow, minfrac=0.0):
    """Probability for a current-season applicant at normalized time `tnow`."""
    decided = applicant.accept is not None and (tnow is None or applicant.normdecidedate <= tnow)
    if decided:
        return 1.0 if applicant.accept else 0.0
    # offers extended after tnow are evaluated as of the offer itself
    treference = applicant.normofferdate if tnow is None else max(tnow, applicant.normofferdate)
    return applicant_probability(fmatch, past_applicants, applicant, treference, minfrac=minfrac)


def wait_list_analysis(fmatch, past_applicants, applicants, tnow, program_history,
                       actual_yield=None, minfrac=0.0):
    """
    Estimate matriculants per program and their wait-list priority.

    `applicants` are the current season's offers, `tnow` the current date
    (or normalized time). Applicants who had decided by `tnow` count as 0 or
    1; the rest get a probability from `past_applicants` via `fmatch`.
    Offers dated after `tnow` are treated as future wait-list offers.
    For post-hoc analysis pass `actual_yield={program: nmatriculants}` to
    get the p-value of the observed outcome.

    Returns (nmatric, progstatus): nmatric is (mean, stddev) summed over
    programs, progstatus maps program -> ProgramYieldPrediction.
    """
    current = defaultdict(list)
    future = defaultdict(list)
    seasons = {}
    for applicant in applicants:
        seasons.setdefault(applicant.program, applicant.season)
        if seasons[applicant.program] != applicant.season:
            raise DataInvariantViolation(f"{applicant.program} applicants span several seasons")
        t = normalized_time(tnow, applicant, program_history)
        p = current_probability(fmatch, past_applicants, applicant, t, minfrac)
        if t is not None and applicant.normofferdate > t:
            future[applicant.program].append(p)
        else:
            current[applicant.program].append(p)

    progstatus = {}
    total_mean, total_variance = 0.0, 0.0
    for program, season in seasons.items():
        try:
            profile = program_history[ProgramKey(program, season)]
        except KeyError:
            raise DataInvariantViolation(f"no program history for {program} {season}") from None
        actual = None if actual_yield is None else actual_yield.get(program)
        prediction = predict_program_yield(
            current[program], profile.target_corrected, future[program], actual
        )
        progstatus[program] = prediction
        total_mean += prediction.mean
        total_variance += prediction.stddev ** 2
    return (total_mean, math.sqrt(total_variance)), progstatus


def wait_list_priorities(progstatus):
    """Programs ordered by wait-list priority, highest first."""
    return sorted(progstatus, key=lambda program: progstatus[program].priority, reverse=True)
