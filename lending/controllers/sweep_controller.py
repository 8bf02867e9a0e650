from dataclasses import asdict

from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from lending.enums import Role
from lending.tasks.expiry_sweep import sweep_expired_pending
from lending.utils.decorators import role_required

sweep_bp = Blueprint("sweeper", __name__)


@sweep_bp.post("/run")
@jwt_required()
@role_required(Role.STAFF.value)
def run_sweep():
    result = sweep_expired_pending()
    return jsonify({"success": True, "data": asdict(result)})
