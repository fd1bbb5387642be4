"""
Admissions Yield Simulation - Similarity Kernel
================================================
Gaussian similarity between programs (selectivity and yield) and between
applicants (normalized rank and offer date), and the matching function that
combines them:

    fmatch(template, applicant, tnow) = phi(p1, p2) * psi(r1 - r2, t1 - t2)

    phi = exp(-(s1 - s2)^2 / (2 sigma_sel^2) - |y1 - y2|^2 / (2 sigma_yield^2))
    psi = exp(-(r1 - r2)^2 / (2 sigma_r^2)   - (t1 - t2)^2  / (2 sigma_t^2))

Each sigma is a tolerance for mismatch. sigma = 0 matches only identical
values, sigma = inf (or None) ignores the corresponding term.
"""

import math

import numpy as np

from applicant_records import UndefinedYieldError

UNDEFINED_YIELD_POLICIES = ('raise', 'exclude', 'neutral')


def gaussian_exponent(delta_sq, sigma):
    """delta^2 / (2 sigma^2), with the sigma -> 0 and sigma -> inf limits."""
    if sigma is None or math.isinf(sigma):
        return 0.0
    if sigma < 0:
        raise ValueError(f"sigma must be non-negative, got {sigma}")
    if sigma == 0:
        return 0.0 if delta_sq == 0 else math.inf
    return delta_sq / (2 * sigma ** 2)


# =============================================================================
# PROGRAM SIMILARITY
# =============================================================================

def default_similarity(program1, program2):
    """Programs match only themselves."""
    return 1.0 if program1 == program2 else 0.0


def program_similarity(stats1, stats2, sigma_sel=math.inf, sigma_yield=math.inf,
                       undefined_yield='raise'):
    """
    Similarity between two programs, in [0, 1], from their ProgramStatistics.

    `undefined_yield` says what to do when either program has no recorded
    decisions (or no statistics at all, passed as None):

        'raise'    raise UndefinedYieldError
        'exclude'  the programs do not match (0)
        'neutral'  drop the affected terms from the exponent
    """
    if undefined_yield not in UNDEFINED_YIELD_POLICIES:
        raise ValueError(f"undefined_yield must be one of {UNDEFINED_YIELD_POLICIES}")
    if stats1 is not None and stats2 is not None and stats1.program == stats2.program:
        return 1.0

    exponent = 0.0
    sel1 = stats1.selectivity if stats1 is not None else None
    sel2 = stats2.selectivity if stats2 is not None else None
    if sel1 is not None and sel2 is not None:
        exponent += gaussian_exponent((sel1 - sel2) ** 2, sigma_sel)
    elif gaussian_exponent(1.0, sigma_sel) > 0:
        if undefined_yield == 'raise':
            raise UndefinedYieldError("selectivity undefined for a program with no applicants")
        if undefined_yield == 'exclude':
            return 0.0

    y1 = stats1.yield_vector if stats1 is not None else None
    y2 = stats2.yield_vector if stats2 is not None else None
    if y1 is not None and y2 is not None:
        exponent += gaussian_exponent(float(np.sum((y1 - y2) ** 2)), sigma_yield)
    elif gaussian_exponent(1.0, sigma_yield) > 0:
        if undefined_yield == 'raise':
            missing = stats1 if y1 is None else stats2
            name = missing.program if missing is not None else 'unknown program'
            raise UndefinedYieldError(f"{name} has no recorded decisions")
        if undefined_yield == 'exclude':
            return 0.0
    return math.exp(-exponent)


class ProgramSimilarityCache:
    """
    Memoized program similarity for one (sigma_sel, sigma_yield) setting.

    Entries are keyed by the program pair in sorted order, since similarity
    is symmetric. Create a new cache whenever the sigmas or the statistics
    change.
    """

    def __init__(self, sigma_sel, sigma_yield, statistics, undefined_yield='raise'):
        if undefined_yield not in UNDEFINED_YIELD_POLICIES:
            raise ValueError(f"undefined_yield must be one of {UNDEFINED_YIELD_POLICIES}")
        self.sigma_sel = sigma_sel
        self.sigma_yield = sigma_yield
        self.statistics = statistics
        self.undefined_yield = undefined_yield
        self._cache = {}

    def __len__(self):
        return len(self._cache)

    def __call__(self, program1, program2):
        return self.lookup(program1, program2)

    def lookup(self, program1, program2):
        if program1 == program2:
            return 1.0
        key = (program1, program2) if program1 < program2 else (program2, program1)
        value = self._cache.get(key)
        if value is None:
            value = program_similarity(
                self.statistics.get(key[0]),
                self.statistics.get(key[1]),
                sigma_sel=self.sigma_sel,
                sigma_yield=self.sigma_yield,
                undefined_yield=self.undefined_yield,
            )
            self._cache[key] = value
        return value


def cached_similarity(sigma_sel, sigma_yield, statistics, undefined_yield='raise'):
    """Create `fsim(program1, program2)` backed by a ProgramSimilarityCache."""
    return ProgramSimilarityCache(sigma_sel, sigma_yield, statistics, undefined_yield)


# =============================================================================
# APPLICANT SIMILARITY
# =============================================================================

def applicant_similarity(drank, dofferdate, sigma_r=math.inf, sigma_t=math.inf):
    """psi term; `drank=None` (rank unknown on either side) leaves rank out."""
    exponent = gaussian_exponent(dofferdate ** 2, sigma_t)
    if drank is not None:
        exponent += gaussian_exponent(drank ** 2, sigma_r)
    return math.exp(-exponent)


def match_function(sigma_r=math.inf, sigma_t=math.inf, progsim=default_similarity):
    """
    Generate a matching function comparing two applicants.

        fmatch(template, applicant, tnow)

    returns a value in [0, 1], 1 for a perfect match. `template` is the
    applicant to find matches for and `applicant` is a candidate from a past
    season. Candidates who had already decided by the normalized time `tnow`
    score exactly 0; with `tnow=None` nobody is excluded.
    """
    def fmatch(template, applicant, tnow):
        if tnow is not None and applicant.normdecidedate is not None and applicant.normdecidedate <= tnow:
            return 0.0
        phi = progsim(template.program, applicant.program)
        if phi == 0:
            return 0.0
        if template.normrank is None or applicant.normrank is None:
            drank = None
        else:
            drank = template.normrank - applicant.normrank
        return phi * applicant_similarity(
            drank, template.normofferdate - applicant.normofferdate, sigma_r, sigma_t
        )

    fmatch.sigma_r = sigma_r
    fmatch.sigma_t = sigma_t
    fmatch.progsim = progsim
    return fmatch
