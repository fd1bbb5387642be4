"""
Admissions Yield Simulation - Program Statistics
=================================================
Aggregates applicant records into the per-program quantities used to compare
programs with each other:

* selectivity: offers extended / applications received
* yield vector: fraction of the program's decisions that were accepts and
  declines within each of `nepochs` equal-width periods of the decision
  season (first offer -> decision deadline)

A program with no recorded decisions has no yield vector (None); callers
decide how to treat it, see `similarity.program_similarity`.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from applicant_records import DataInvariantViolation, Outcome

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_NEPOCHS = 3


def offer_data(applicants, program_history):
    """
    Summarize application and offer data for each program.

    Returns {program: (noffers, napplicants)}. Applications are summed over
    the seasons in which the program appears among `applicants`, so both
    counts cover the same seasons.
    """
    noffers = defaultdict(int)
    seasons = defaultdict(set)
    for applicant in applicants:
        noffers[applicant.program] += 1
        seasons[applicant.program].add(applicant.key)

    summary = {}
    for program, count in noffers.items():
        napplicants = 0
        for key in seasons[program]:
            try:
                napplicants += program_history[key].napplicants
            except KeyError:
                raise DataInvariantViolation(f"no program history for {key}") from None
        summary[program] = (count, napplicants)
    return summary


def decision_epoch(normdecidedate, nepochs):
    """Index of the period of the season in which a decision fell."""
    idx = int(np.floor(normdecidedate * nepochs))
    return min(max(idx, 0), nepochs - 1)


def yield_data(applicants, nepochs=None):
    """
    Compute the outcome of offers of admission for each program.

    With `nepochs=None` the result maps program -> Outcome for the whole
    season; otherwise program -> tuple of `nepochs` Outcomes, one per period
    of equal duration. Applicants who have not decided are skipped.
    """
    if nepochs is not None and nepochs < 1:
        raise ValueError(f"nepochs must be positive, got {nepochs}")
    outcomes = {}
    for applicant in applicants:
        if applicant.accept is None:
            continue
        if nepochs is None:
            outcomes[applicant.program] = outcomes.get(applicant.program, Outcome()).record(applicant.accept)
            continue
        epochs = list(outcomes.get(applicant.program, (Outcome(),) * nepochs))
        idx = decision_epoch(applicant.normdecidedate, nepochs)
        epochs[idx] = epochs[idx].record(applicant.accept)
        outcomes[applicant.program] = tuple(epochs)
    return outcomes


@dataclass(frozen=True)
class ProgramStatistics:
    """Selectivity and time-resolved yield of one program, pooled over seasons."""
    program: str
    noffers: int
    napplicants: int
    outcomes: Tuple[Outcome, ...]

    @property
    def ndecisions(self):
        return sum(o.total for o in self.outcomes)

    @property
    def selectivity(self) -> Optional[float]:
        if self.napplicants == 0:
            return None
        return self.noffers / self.napplicants

    @property
    def yield_vector(self) -> Optional[np.ndarray]:
        """[accepts_1, declines_1, ..., accepts_K, declines_K] / total decisions"""
        n = self.ndecisions
        if n == 0:
            return None
        return np.array([[o.naccepts, o.ndeclines] for o in self.outcomes], dtype=float).ravel() / n


def program_statistics(applicants, program_history, nepochs=DEFAULT_NEPOCHS, season=None):
    """
    Build ProgramStatistics for every program among `applicants`.

    If `season` is given only applicants from strictly earlier seasons are
    used, which is what a prediction made during `season` could have known.
    """
    if season is not None:
        applicants = [a for a in applicants if a.season < season]
    offers = offer_data(applicants, program_history)
    outcomes = yield_data(applicants, nepochs)

    statistics = {}
    for program, (noffers, napplicants) in offers.items():
        statistics[program] = ProgramStatistics(
            program=program,
            noffers=noffers,
            napplicants=napplicants,
            outcomes=outcomes.get(program, (Outcome(),) * nepochs),
        )
    return statistics


def summarize_statistics(statistics):
    """One row per program, for reports: selectivity, decisions, overall yield."""
    rows = []
    for program in sorted(statistics):
        stats = statistics[program]
        total = sum(stats.outcomes, Outcome())
        rows.append({
            'program': program,
            'noffers': stats.noffers,
            'napplicants': stats.napplicants,
            'selectivity': stats.selectivity,
            'ndecisions': total.total,
            'yield': total.naccepts / total.total if total.total else None,
        })
    return rows
