"""
Risk and matching analytics blueprint (read-only).

Endpoints:
  GET /api/v1/segment-functions/<id>/risk?scenario_id=        aggregate risk
  GET /api/v1/segment-functions/batch-risk?ids=1,2&scenario_id=
  GET /api/v1/projects/<id>/risk                              per-project breakdown
  GET /api/v1/match-score?capability_id=&requirement_id=      capability fit
  GET /api/v1/requirements/<id>/recommendations?top_n=&min_score=
"""

import logging

from flask import Blueprint, jsonify, request

from portfolio.blueprints import query_int
from portfolio.middleware.jwt_auth import login_required
from portfolio.services import resource_matcher, risk_calculator
from portfolio.utils.errors import E, api_error, register_domain_error_handlers
from portfolio.utils.helpers import parse_id_list

logger = logging.getLogger(__name__)

risk_bp = Blueprint("risk", __name__, url_prefix="/api/v1")
register_domain_error_handlers(risk_bp)


@risk_bp.route("/segment-functions/<int:sf_id>/risk", methods=["GET"])
@login_required
def segment_function_risk(sf_id):
    scenario_id, err = query_int("scenario_id")
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    return jsonify(risk_calculator.segment_function_risk(sf_id, scenario_id)), 200


@risk_bp.route("/segment-functions/batch-risk", methods=["GET"])
@login_required
def batch_segment_function_risk():
    try:
        ids = parse_id_list(request.args.get("ids"))
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    if not ids:
        return api_error(E.VALIDATION_REQUIRED, "ids query parameter is required")
    scenario_id, err = query_int("scenario_id")
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    return jsonify(risk_calculator.batch_segment_function_risk(ids, scenario_id)), 200


@risk_bp.route("/projects/<int:project_id>/risk", methods=["GET"])
@login_required
def project_risk(project_id):
    return jsonify(risk_calculator.project_risk_breakdown(project_id)), 200


@risk_bp.route("/match-score", methods=["GET"])
@login_required
def match_score():
    capability_id, err_c = query_int("capability_id")
    requirement_id, err_r = query_int("requirement_id")
    if err_c or err_r:
        return api_error(E.VALIDATION_INVALID, err_c or err_r)
    if capability_id is None or requirement_id is None:
        return api_error(
            E.VALIDATION_REQUIRED, "capability_id and requirement_id are required",
        )
    return jsonify(resource_matcher.score_by_ids(capability_id, requirement_id)), 200


@risk_bp.route("/requirements/<int:requirement_id>/recommendations", methods=["GET"])
@login_required
def recommendations(requirement_id):
    top_n, err_n = query_int("top_n")
    min_score, err_s = query_int("min_score")
    if err_n or err_s:
        return api_error(E.VALIDATION_INVALID, err_n or err_s)
    result = resource_matcher.recommend_resources(
        requirement_id, top_n=top_n, min_score=min_score,
    )
    return jsonify(result), 200
