"""
Scenario blueprint: lifecycle, clone and stats endpoints.

Endpoints:
  GET    /api/v1/scenarios                  list visible scenarios
  POST   /api/v1/scenarios                  create (quota-checked)
  GET    /api/v1/scenarios/<id>             get
  PUT    /api/v1/scenarios/<id>             update name/description/metadata
  DELETE /api/v1/scenarios/<id>             soft delete (planned only)
  POST   /api/v1/scenarios/<id>/clone       deep copy into a new planned scenario
  POST   /api/v1/scenarios/<id>/publish     publish (elevated roles)
  GET    /api/v1/scenarios/<id>/stats       active entity counts

Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, g, jsonify

from portfolio.blueprints import json_body
from portfolio.middleware.jwt_auth import login_required
from portfolio.services import scenario_clone, scenario_service
from portfolio.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

scenario_bp = Blueprint("scenario", __name__, url_prefix="/api/v1")
register_domain_error_handlers(scenario_bp)


@scenario_bp.route("/scenarios", methods=["GET"])
@login_required
def list_scenarios():
    scenarios = scenario_service.list_scenarios(g.current_user)
    return jsonify([s.to_dict() for s in scenarios]), 200


@scenario_bp.route("/scenarios", methods=["POST"])
@login_required
def create_scenario():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    segment_function_id = data.get("segment_function_id")
    if segment_function_id is not None and not isinstance(segment_function_id, int):
        return api_error(E.VALIDATION_INVALID, "segment_function_id must be an integer")

    scenario = scenario_service.create_scenario(
        g.current_user,
        name,
        data.get("description") or "",
        segment_function_id=segment_function_id,
        metadata=data.get("metadata"),
    )
    return jsonify(scenario.to_dict()), 201


@scenario_bp.route("/scenarios/<int:scenario_id>", methods=["GET"])
@login_required
def get_scenario(scenario_id):
    scenario = scenario_service.get_scenario(scenario_id, g.current_user)
    return jsonify(scenario.to_dict()), 200


@scenario_bp.route("/scenarios/<int:scenario_id>", methods=["PUT"])
@login_required
def update_scenario(scenario_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    scenario = scenario_service.update_scenario(scenario_id, g.current_user, data)
    return jsonify(scenario.to_dict()), 200


@scenario_bp.route("/scenarios/<int:scenario_id>", methods=["DELETE"])
@login_required
def delete_scenario(scenario_id):
    scenario_service.delete_scenario(scenario_id, g.current_user)
    return jsonify({"message": "Scenario deleted successfully"}), 200


@scenario_bp.route("/scenarios/<int:scenario_id>/clone", methods=["POST"])
@login_required
def clone_scenario(scenario_id):
    data = json_body(required=False)
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    name = data.get("name")
    if name is not None and not isinstance(name, str):
        return api_error(E.VALIDATION_INVALID, "name must be a string")

    scenario = scenario_clone.clone_scenario(
        scenario_id,
        g.current_user,
        name=name,
        description=data.get("description"),
    )
    return jsonify(scenario.to_dict()), 201


@scenario_bp.route("/scenarios/<int:scenario_id>/publish", methods=["POST"])
@login_required
def publish_scenario(scenario_id):
    scenario = scenario_service.publish_scenario(scenario_id, g.current_user)
    return jsonify(scenario.to_dict()), 200


@scenario_bp.route("/scenarios/<int:scenario_id>/stats", methods=["GET"])
@login_required
def scenario_stats(scenario_id):
    return jsonify(scenario_service.scenario_stats(scenario_id, g.current_user)), 200
