"""
Admissions Yield Simulation - Applicant and Program Records
============================================================
Immutable records shared by every stage of the pipeline, the error types
raised when they are misused, and the helpers that turn "natural" units
(integer ranks, calendar dates, long program names) into normalized form.
"""

from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Optional


# =============================================================================
# ERRORS
# =============================================================================

class AdmissionsError(Exception):
    """Base class for all errors raised by the simulation code."""


class DataInvariantViolation(AdmissionsError, ValueError):
    """A program or applicant record is malformed (fatal for the run)."""


class UndersupportedEstimate(AdmissionsError):
    """The likelihood weights are too small to support a probability."""


class DegenerateSamplingError(AdmissionsError):
    """Weighted resampling was asked to draw from zero total weight."""


class UndefinedYieldError(AdmissionsError):
    """A program has no recorded decisions, so its yield is undefined."""


# =============================================================================
# PROGRAM LOOKUP TABLE
# =============================================================================

# Abbreviation -> full name. Read-only; pass it (or your own table) to the
# normalization helpers explicitly.
PROGRAM_LOOKUPS = MappingProxyType({
    'BB': 'Biochemistry, Biophysics, and Structural Biology',
    'CB': 'Computational and Systems Biology',
    'DRSCB': 'Developmental, Regenerative, and Stem Cell Biology',
    'EEPB': 'Evolution, Ecology, and Population Biology',
    'HSG': 'Human and Statistical Genetics',
    'IMM': 'Immunology',
    'MCB': 'Molecular Cell Biology',
    'MGG': 'Molecular Genetics and Genomics',
    'MMMP': 'Molecular Microbiology and Microbial Pathogenesis',
    'NS': 'Neurosciences',
    'PB': 'Plant and Microbial Biosciences',
})


def program_abbreviation(name, lookups=PROGRAM_LOOKUPS):
    """Return the abbreviation for `name`, which may be given in short or long form."""
    name = str(name).strip()
    if name in lookups:
        return name
    for abbrev, fullname in lookups.items():
        if fullname.lower() == name.lower():
            return abbrev
    raise DataInvariantViolation(f"unknown program {name!r}")


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True, order=True)
class ProgramKey:
    """Program abbreviation and admissions season (the year decisions were due)."""
    program: str
    season: int


@dataclass(frozen=True)
class ProgramProfile:
    """
    Summary data for one program in one admissions season.

    target_raw:       target number of matriculants from applicant pool and capacity
    target_corrected: target after correcting for over/under-recruitment in past years
    napplicants:      number of applications received
    firstofferdate:   date of the first offer (start of the decision period)
    lastdecisiondate: date by which every applicant must have decided
    nmatriculants:    number who actually matriculated, or None if not yet known
    """
    target_raw: int
    target_corrected: int
    napplicants: int
    firstofferdate: date
    lastdecisiondate: date
    nmatriculants: Optional[int] = None

    def __post_init__(self):
        if self.target_raw < 0 or self.target_corrected < 0:
            raise DataInvariantViolation(f"negative target in {self}")
        if self.napplicants < 0:
            raise DataInvariantViolation(f"negative applicant count in {self}")
        if self.nmatriculants is not None and self.nmatriculants < 0:
            raise DataInvariantViolation(f"negative matriculant count in {self}")
        # the window is a divisor in normdate
        if not self.firstofferdate < self.lastdecisiondate:
            raise DataInvariantViolation(
                f"first offer {self.firstofferdate} is not before the decision "
                f"deadline {self.lastdecisiondate}"
            )


@dataclass(frozen=True)
class Applicant:
    """
    Normalized data about an applicant who received, or may receive, an offer.

    Ranks and dates are scaled to [0, 1] using the owning program's season:
    a rank near 0 is the top applicant, an offer date of 0 is the first offer
    of the season and 1 is the decision deadline. `normrank` is None when the
    rank is unknown; `normdecidedate` and `accept` are None while the
    applicant has not yet decided.
    """
    program: str
    season: int
    normofferdate: float
    normrank: Optional[float] = None
    normdecidedate: Optional[float] = None
    accept: Optional[bool] = None

    def __post_init__(self):
        if self.normrank is not None and not 0 <= self.normrank <= 1:
            raise DataInvariantViolation(f"normalized rank {self.normrank} outside [0, 1]")
        if not 0 <= self.normofferdate <= 1:
            raise DataInvariantViolation(f"normalized offer date {self.normofferdate} outside [0, 1]")
        if self.accept is not None and self.normdecidedate is None:
            raise DataInvariantViolation("a decision was recorded without a decision date")
        if self.normdecidedate is not None and self.normdecidedate < self.normofferdate:
            raise DataInvariantViolation(
                f"decision date {self.normdecidedate} precedes offer date {self.normofferdate}"
            )

    @property
    def key(self):
        return ProgramKey(self.program, self.season)

    @property
    def is_resolved(self):
        return self.accept is not None

    @property
    def is_pending(self):
        return self.accept is None and self.normdecidedate is None


@dataclass(frozen=True)
class Outcome:
    """Tally of declined and accepted offers."""
    ndeclines: int = 0
    naccepts: int = 0

    @property
    def total(self):
        return self.ndeclines + self.naccepts

    def __add__(self, other):
        return Outcome(self.ndeclines + other.ndeclines, self.naccepts + other.naccepts)

    def record(self, accept):
        """Return a new tally including one more decision."""
        return self + (Outcome(0, 1) if accept else Outcome(1, 0))


# =============================================================================
# NORMALIZATION
# =============================================================================

def normdate(t, profile):
    """Express date `t` as a fraction of the first-offer -> last-decision window."""
    span = (profile.lastdecisiondate - profile.firstofferdate).days
    return (t - profile.firstofferdate).days / span


def infer_season(program, offerdate, program_history):
    """Find the season whose offer window for `program` contains `offerdate`."""
    for season in (offerdate.year, offerdate.year + 1):
        profile = program_history.get(ProgramKey(program, season))
        if profile and profile.firstofferdate <= offerdate <= profile.lastdecisiondate:
            return season
    raise DataInvariantViolation(f"no {program} season covers an offer on {offerdate}")


def normalize_applicant(program, offerdate, program_history, rank=None, decidedate=None,
                        accept=None, season=None, lookups=PROGRAM_LOOKUPS):
    """
    Create an Applicant from natural units.

    `rank` is 1 for the top applicant and `napplicants` for the bottom one;
    dates are `datetime.date`. When `season` is omitted it is inferred from
    the program history as the season whose offer window contains `offerdate`.
    """
    program = program_abbreviation(program, lookups)
    if season is None:
        season = infer_season(program, offerdate, program_history)
    key = ProgramKey(program, int(season))
    try:
        profile = program_history[key]
    except KeyError:
        raise DataInvariantViolation(f"no program history for {key}") from None

    normrank = None
    if rank is not None:
        if not 1 <= rank <= profile.napplicants:
            raise DataInvariantViolation(
                f"rank {rank} outside 1..{profile.napplicants} for {key}"
            )
        normrank = rank / profile.napplicants
    normdecidedate = None if decidedate is None else normdate(decidedate, profile)
    return Applicant(
        program=program,
        season=key.season,
        normofferdate=normdate(offerdate, profile),
        normrank=normrank,
        normdecidedate=normdecidedate,
        accept=None if accept is None else bool(accept),
    )
