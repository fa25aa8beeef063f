"""
Project dependency blueprint.

Endpoints:
  GET    /api/v1/scenarios/<id>/dependencies   list active dependencies
  POST   /api/v1/scenarios/<id>/dependencies   create
  DELETE /api/v1/dependencies/<id>             soft delete
"""

import logging

from flask import Blueprint, g, jsonify

from portfolio.blueprints import json_body
from portfolio.middleware.jwt_auth import login_required
from portfolio.services import dependency_service
from portfolio.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

dependency_bp = Blueprint("dependency", __name__, url_prefix="/api/v1")
register_domain_error_handlers(dependency_bp)


@dependency_bp.route("/scenarios/<int:scenario_id>/dependencies", methods=["GET"])
@login_required
def list_dependencies(scenario_id):
    deps = dependency_service.list_dependencies(scenario_id, g.current_user)
    return jsonify([d.to_dict() for d in deps]), 200


@dependency_bp.route("/scenarios/<int:scenario_id>/dependencies", methods=["POST"])
@login_required
def create_dependency(scenario_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    dependency = dependency_service.create_dependency(scenario_id, g.current_user, data)
    return jsonify(dependency.to_dict()), 201


@dependency_bp.route("/dependencies/<int:dependency_id>", methods=["DELETE"])
@login_required
def delete_dependency(dependency_id):
    dependency_service.delete_dependency(dependency_id, g.current_user)
    return jsonify({"message": "Dependency deleted successfully"}), 200
