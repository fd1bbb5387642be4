"""
Admissions Yield Simulation - Flask Web Application
====================================================
JSON endpoints reporting program statistics and mid-season wait-list status,
using the parameters saved by tune_model.py.
"""

import json
import math
import os
from datetime import date

from flask import Flask, jsonify, request

from applicant_records import AdmissionsError
from data_loading import read_applicant_data, read_program_history
from program_profiles import program_statistics, summarize_statistics
from tuning import DEFAULT_MINFRAC, build_matcher
from wait_list import wait_list_analysis, wait_list_priorities

app = Flask(__name__)

# =============================================================================
# LOAD DATA
# =============================================================================

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get('ADMISSIONS_DATA_DIR', os.path.join(BASE_DIR, 'data'))
MODEL_DIR = os.environ.get('ADMISSIONS_MODEL_DIR', os.path.join(BASE_DIR, 'models'))

# Used until a tuning report exists: programs match only themselves
DEFAULT_SIGMAS = (0.0, 0.0, math.inf, math.inf)


def load_state():
    """Read the data files and the tuned parameters (if any)."""
    program_history = read_program_history(os.path.join(DATA_DIR, 'programdata.csv'))
    applicants = read_applicant_data(os.path.join(DATA_DIR, 'applicantdata.csv'), program_history)

    sigmas, minfrac = DEFAULT_SIGMAS, DEFAULT_MINFRAC
    report_path = os.path.join(MODEL_DIR, 'tuning_report.json')
    if os.path.exists(report_path):
        with open(report_path, 'r') as f:
            report = json.load(f)
        params = report['parameters']
        sigmas = tuple(math.inf if params[name] is None else params[name]
                       for name in ('sigma_sel', 'sigma_yield', 'sigma_r', 'sigma_t'))
        minfrac = report.get('minfrac', minfrac)
    return {
        'program_history': program_history,
        'applicants': applicants,
        'sigmas': sigmas,
        'minfrac': minfrac,
    }


def get_state():
    if 'ADMISSIONS_STATE' not in app.config:
        app.config['ADMISSIONS_STATE'] = load_state()
    return app.config['ADMISSIONS_STATE']


# =============================================================================
# ROUTES
# =============================================================================

@app.route('/programs')
def programs():
    """Selectivity and overall yield of every program, pooled over all seasons."""
    try:
        state = get_state()
        statistics = program_statistics(state['applicants'], state['program_history'])
        return jsonify(summarize_statistics(statistics))

    except (AdmissionsError, KeyError, TypeError, ValueError) as e:
        return jsonify({
            'status': 'error',
            'message': str(e)
        }), 400


@app.route('/wait-list', methods=['POST'])
def wait_list():
    """Predicted class sizes and wait-list priority as of a given date."""
    try:
        state = get_state()
        data = request.get_json(silent=True) or {}

        tnow = date.fromisoformat(data['date'])
        applicants = state['applicants']
        season = int(data.get('season', max(a.season for a in applicants)))
        current = [a for a in applicants if a.season == season]
        past = [a for a in applicants if a.season < season]
        if not current:
            raise ValueError(f"no offers recorded for season {season}")

        program_history = state['program_history']
        fmatch = build_matcher(state['sigmas'], program_statistics(past, program_history))
        actual_yield = None
        if data.get('posthoc', False):
            actual_yield = {
                key.program: profile.nmatriculants
                for key, profile in program_history.items()
                if key.season == season and profile.nmatriculants is not None
            }
        nmatric, progstatus = wait_list_analysis(
            fmatch, past, current, tnow, program_history=program_history,
            actual_yield=actual_yield, minfrac=state['minfrac'],
        )

        predictions = []
        for program in wait_list_priorities(progstatus):
            status = progstatus[program]
            predictions.append({
                'program': program,
                'mean': round(status.mean, 2),
                'stddev': round(status.stddev, 2),
                'priority': round(status.priority, 3),
                'poutcome': None if status.poutcome is None else round(status.poutcome, 4),
            })

        return jsonify({
            'status': 'success',
            'season': season,
            'date': tnow.isoformat(),
            'nmatriculants': {'mean': round(nmatric[0], 2), 'stddev': round(nmatric[1], 2)},
            'programs': predictions,
        })

    except (AdmissionsError, KeyError, TypeError, ValueError) as e:
        return jsonify({
            'status': 'error',
            'message': str(e)
        }), 400


if __name__ == '__main__':
    app.run(debug=True, port=5001, host='0.0.0.0')
