"""
Admissions Yield Simulation - Parameter Tuning Script
======================================================
Loads program history and applicant records, grid-searches the matching
parameters on past seasons, checks calibration on the latest season and
saves the chosen parameters to models/tuning_report.json.

Run: python3 tune_model.py
"""

import json
import math
import os
import warnings

import numpy as np
from sklearn.calibration import calibration_curve
from sklearn.metrics import brier_score_loss, roc_auc_score

from data_loading import read_applicant_data, read_program_history
from program_profiles import DEFAULT_NEPOCHS, program_statistics, summarize_statistics
from tuning import DEFAULT_MINFRAC, best_parameters, holdout_predictions, net_loglike

warnings.filterwarnings('ignore')

# =============================================================================
# CONFIGURATION
# =============================================================================

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get('ADMISSIONS_DATA_DIR', os.path.join(BASE_DIR, 'data'))
MODEL_DIR = os.environ.get('ADMISSIONS_MODEL_DIR', os.path.join(BASE_DIR, 'models'))

PROGRAM_DATA_PATH = os.path.join(DATA_DIR, 'programdata.csv')
APPLICANT_DATA_PATH = os.path.join(DATA_DIR, 'applicantdata.csv')
REPORT_PATH = os.path.join(MODEL_DIR, 'tuning_report.json')

# Candidate values; inf means "ignore this term"
SIGMA_SELS = [0.05, 0.2, 1.0, math.inf]
SIGMA_YIELDS = [0.05, 0.2, 1.0, math.inf]
SIGMA_RS = [0.02, 0.05, 0.2, math.inf]
SIGMA_TS = [0.1, 0.3, 1.0, math.inf]

CALIBRATION_BINS = 5


def _jsonable(value):
    """Infinite sigmas/scores are not valid JSON; store them as None."""
    value = float(value)
    return None if math.isinf(value) or math.isnan(value) else value


def load_data(program_path=PROGRAM_DATA_PATH, applicant_path=APPLICANT_DATA_PATH):
    print("Loading program history and applicant data...")
    program_history = read_program_history(program_path)
    applicants = read_applicant_data(applicant_path, program_history)
    seasons = sorted({a.season for a in applicants})
    ndecided = sum(a.accept is not None for a in applicants)
    print(f"  {len(program_history)} program-seasons, {len(applicants):,} offers ({ndecided:,} decided)")
    print(f"  Seasons: {seasons}")
    return program_history, applicants


def calibration_report(probabilities, accepted, n_bins=CALIBRATION_BINS):
    """AUC, Brier score and a binned calibration table for held-out predictions."""
    report = {'n': int(len(probabilities))}
    if len(probabilities) == 0:
        return report
    report['brier'] = float(brier_score_loss(accepted, probabilities))
    # AUC is undefined when only one outcome occurs
    report['auc'] = float(roc_auc_score(accepted, probabilities)) if len(np.unique(accepted)) == 2 else None
    prob_true, prob_pred = calibration_curve(accepted, probabilities, n_bins=n_bins)
    report['calibration'] = [
        {'predicted': float(pred), 'actual': float(true)} for pred, true in zip(prob_pred, prob_true)
    ]
    return report


def tune(program_history, applicants, grids=(SIGMA_SELS, SIGMA_YIELDS, SIGMA_RS, SIGMA_TS),
         minfrac=DEFAULT_MINFRAC, nepochs=DEFAULT_NEPOCHS, max_workers=None, verbose=True):
    """
    Grid search on every season but the latest, then evaluate on the latest.

    Returns the report dict. Needs at least two seasons before the held-out
    one, so that some season can be scored against an earlier one.
    """
    latest = max(a.season for a in applicants)
    training = [a for a in applicants if a.season < latest]
    if len({a.season for a in training}) < 2:
        raise ValueError("tuning needs at least three seasons of applicants")

    scores = net_loglike(*grids, applicants=training, program_history=program_history,
                         minfrac=minfrac, nepochs=nepochs, max_workers=max_workers, verbose=verbose)
    sigmas = best_parameters(scores, *grids)
    names = ('sigma_sel', 'sigma_yield', 'sigma_r', 'sigma_t')

    probabilities, accepted, nskipped = holdout_predictions(
        sigmas, applicants, program_history, latest, minfrac=minfrac, nepochs=nepochs
    )
    evaluation = calibration_report(probabilities, accepted)
    evaluation['season'] = int(latest)
    evaluation['n_undersupported'] = int(nskipped)

    statistics = program_statistics(applicants, program_history, nepochs)
    return {
        'parameters': {name: _jsonable(s) for name, s in zip(names, sigmas)},
        'best_score': _jsonable(scores.max()),
        'n_supported_combinations': int(np.isfinite(scores).sum()),
        'grids': {name: [_jsonable(s) for s in grid] for name, grid in zip(names, grids)},
        'scores': [_jsonable(s) for s in scores.ravel()],
        'minfrac': minfrac,
        'nepochs': nepochs,
        'holdout': evaluation,
        'programs': summarize_statistics(statistics),
    }


def print_report(report):
    print("\n" + "=" * 70)
    print("SELECTED PARAMETERS")
    print("=" * 70)
    for name, value in report['parameters'].items():
        shown = 'inf (ignored)' if value is None else f"{value:g}"
        print(f"  {name:<12} {shown}")
    print(f"  Net log-likelihood: {report['best_score']}")
    print(f"  Supported combinations: {report['n_supported_combinations']}/{len(report['scores'])}")

    holdout = report['holdout']
    print("\n" + "=" * 70)
    print(f"CALIBRATION ANALYSIS (season {holdout['season']})")
    print("=" * 70)
    print(f"Predicted applicants: {holdout['n']} (under-supported: {holdout['n_undersupported']})")
    if holdout['n'] == 0:
        return
    auc = holdout['auc']
    print(f"AUC:   {auc:.4f}" if auc is not None else "AUC:   undefined (one outcome only)")
    print(f"Brier: {holdout['brier']:.4f}")
    print("-" * 45)
    print(f"{'Bin':<10} {'Predicted':>12} {'Actual':>12} {'Diff':>10}")
    print("-" * 45)
    for i, row in enumerate(holdout['calibration']):
        diff = row['actual'] - row['predicted']
        print(f"{i+1:<10} {row['predicted']*100:>11.1f}% {row['actual']*100:>11.1f}% {diff*100:>+9.1f}%")


def save_report(report, path=REPORT_PATH):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w') as f:
        json.dump(report, f, indent=2)
    print(f"\nTuning report saved to: {path}")


def main():
    print("=" * 70)
    print("ADMISSIONS YIELD SIMULATION - PARAMETER TUNING")
    print("=" * 70)

    program_history, applicants = load_data()
    report = tune(program_history, applicants)
    print_report(report)
    save_report(report)

    print("\n" + "=" * 70)
    print("TUNING COMPLETE")
    print("=" * 70)


if __name__ == '__main__':
    main()
