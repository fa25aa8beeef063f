"""
Resource allocation blueprint.

Endpoints:
  POST   /api/v1/allocations                create
  PUT    /api/v1/allocations/<id>           update
  DELETE /api/v1/allocations/<id>           soft delete
  GET    /api/v1/resources/<id>/overlap     max concurrent allocation (?scenario_id=, default: the resource's scenario)

Mutations return the allocation plus the resource's recomputed
``max_concurrent_allocation`` and ``over_allocated`` flag.
"""

import logging

from flask import Blueprint, g, jsonify

from portfolio.blueprints import json_body, query_int
from portfolio.middleware.jwt_auth import login_required
from portfolio.services import allocation_service
from portfolio.services.allocation_overlap import resource_overlap
from portfolio.utils.errors import E, api_error, register_domain_error_handlers

logger = logging.getLogger(__name__)

allocation_bp = Blueprint("allocation", __name__, url_prefix="/api/v1")
register_domain_error_handlers(allocation_bp)


def _with_overlap(allocation, overlap):
    result = allocation.to_dict()
    result["max_concurrent_allocation"] = overlap["max_concurrent_allocation"]
    result["over_allocated"] = overlap["over_allocated"]
    return result


@allocation_bp.route("/allocations", methods=["POST"])
@login_required
def create_allocation():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    missing = [k for k in ("resource_id", "project_id") if data.get(k) in (None, "")]
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )
    allocation, overlap = allocation_service.create_allocation(g.current_user, data)
    return jsonify(_with_overlap(allocation, overlap)), 201


@allocation_bp.route("/allocations/<int:allocation_id>", methods=["PUT"])
@login_required
def update_allocation(allocation_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    allocation, overlap = allocation_service.update_allocation(
        allocation_id, g.current_user, data,
    )
    return jsonify(_with_overlap(allocation, overlap)), 200


@allocation_bp.route("/allocations/<int:allocation_id>", methods=["DELETE"])
@login_required
def delete_allocation(allocation_id):
    overlap = allocation_service.delete_allocation(allocation_id, g.current_user)
    return jsonify({"message": "Allocation deleted successfully", "overlap": overlap}), 200


@allocation_bp.route("/resources/<int:resource_id>/overlap", methods=["GET"])
@login_required
def get_resource_overlap(resource_id):
    scenario_id, err = query_int("scenario_id")
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    return jsonify(resource_overlap(resource_id, scenario_id)), 200
