"""
Admissions Yield Simulation - Data Loading
===========================================
Reads program history and applicant records from CSV files and converts
them into ProgramProfile / Applicant records.

Program history columns:
    program, season, target_raw, target_corrected, nmatriculants,
    napplicants, firstofferdate, lastdecisiondate

Applicant columns:
    program, rank, offerdate, decidedate, accept   (season optional)

Both readers accept a `transform(df)` hook to adapt files with a different
layout before the records are extracted.
"""

import pandas as pd

from applicant_records import (
    PROGRAM_LOOKUPS,
    DataInvariantViolation,
    ProgramKey,
    ProgramProfile,
    normalize_applicant,
    program_abbreviation,
)

PROGRAM_COLUMNS = ['program', 'season', 'target_raw', 'target_corrected',
                   'napplicants', 'firstofferdate', 'lastdecisiondate']
APPLICANT_COLUMNS = ['program', 'offerdate']

DATE_FORMATS = ['%Y-%m-%d', '%m/%d/%Y']


def parse_dates(series):
    """Parse a column of dates, trying each known format in turn."""
    parsed = pd.to_datetime(series, format=DATE_FORMATS[0], errors='coerce')
    for fmt in DATE_FORMATS[1:]:
        mask = parsed.isna() & series.notna()
        if mask.any():
            parsed.loc[mask] = pd.to_datetime(series[mask], format=fmt, errors='coerce')
    return parsed


def clean_accept(value):
    """Standardize a decision to True/False, or None if undecided"""
    if pd.isna(value):
        return None
    if isinstance(value, bool):
        return value
    value_lower = str(value).lower().strip()
    if value_lower in ('yes', 'y', 'true', 't', '1', '1.0', 'accept', 'accepted'):
        return True
    if value_lower in ('no', 'n', 'false', 'f', '0', '0.0', 'decline', 'declined'):
        return False
    if value_lower in ('', 'missing', 'pending', 'na'):
        return None
    raise DataInvariantViolation(f"cannot interpret decision {value!r}")


def _optional_int(value):
    return None if pd.isna(value) else int(value)


def _check_columns(df, required, path):
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise DataInvariantViolation(f"{path}: missing columns {missing}")


def read_program_history(path, transform=None, lookups=PROGRAM_LOOKUPS):
    """
    Read program history from a CSV file.

    Returns a dict mapping ProgramKey -> ProgramProfile. `target_corrected`
    defaults to `target_raw` when blank; `nmatriculants` may be blank.
    """
    df = pd.read_csv(path)
    if transform is not None:
        df = transform(df)
    if 'target_corrected' not in df.columns and 'target_raw' in df.columns:
        df['target_corrected'] = df['target_raw']
    _check_columns(df, PROGRAM_COLUMNS, path)

    df['target_corrected'] = df['target_corrected'].fillna(df['target_raw'])
    df['firstofferdate'] = parse_dates(df['firstofferdate'])
    df['lastdecisiondate'] = parse_dates(df['lastdecisiondate'])
    if df[['firstofferdate', 'lastdecisiondate']].isna().any().any():
        raise DataInvariantViolation(f"{path}: unparseable or missing dates")
    if 'nmatriculants' not in df.columns:
        df['nmatriculants'] = None

    program_history = {}
    for _, row in df.iterrows():
        key = ProgramKey(program_abbreviation(row['program'], lookups), int(row['season']))
        if key in program_history:
            raise DataInvariantViolation(f"{path}: duplicate entry for {key}")
        program_history[key] = ProgramProfile(
            target_raw=int(row['target_raw']),
            target_corrected=int(row['target_corrected']),
            napplicants=int(row['napplicants']),
            firstofferdate=row['firstofferdate'].date(),
            lastdecisiondate=row['lastdecisiondate'].date(),
            nmatriculants=_optional_int(row['nmatriculants']),
        )
    return program_history


def read_applicant_data(path, program_history, transform=None, lookups=PROGRAM_LOOKUPS):
    """
    Read applicant records (offers extended) from a CSV file.

    Ranks are integers (1 = top applicant) and may be blank; `decidedate` and
    `accept` are blank for applicants who have not yet decided. Returns a list
    of Applicant records in file order.
    """
    df = pd.read_csv(path)
    if transform is not None:
        df = transform(df)
    _check_columns(df, APPLICANT_COLUMNS, path)
    for col in ('rank', 'decidedate', 'accept', 'season'):
        if col not in df.columns:
            df[col] = None

    df['offerdate'] = parse_dates(df['offerdate'])
    if df['offerdate'].isna().any():
        raise DataInvariantViolation(f"{path}: unparseable or missing offer dates")
    df['decidedate'] = parse_dates(df['decidedate'])

    applicants = []
    for _, row in df.iterrows():
        decidedate = row['decidedate']
        applicants.append(normalize_applicant(
            program=row['program'],
            offerdate=row['offerdate'].date(),
            program_history=program_history,
            rank=_optional_int(row['rank']),
            decidedate=None if pd.isna(decidedate) else decidedate.date(),
            accept=clean_accept(row['accept']),
            season=_optional_int(row['season']),
            lookups=lookups,
        ))
    return applicants
