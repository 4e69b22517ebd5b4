# Overview: Flask API routes for companies and branches; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import branch_service
from ..validation import ValidationError, coerce_id, optional_str, require_json_object, require_str
from .errors import error_response


branches_bp = Blueprint("branches", __name__, url_prefix="/api")


@branches_bp.get("/companies")
@require_auth
def list_companies_route():
    companies = branch_service.list_companies()
    return jsonify([company.to_dict() for company in companies]), 200


@branches_bp.get("/companies/<int:company_id>")
@require_auth
def get_company_route(company_id: int):
    company = branch_service.get_company(company_id)
    if not company:
        return jsonify({"error": "Company not found"}), 404
    return jsonify(company.to_dict()), 200


@branches_bp.post("/companies")
@require_auth
@require_permission("MANAGE_USERS")
def create_company_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        company = branch_service.create_company(
            name=require_str(data.get("name"), "name", max_length=255),
            registration_number=require_str(data.get("registration_number"), "registration_number", max_length=50),
            vat_number=require_str(data.get("vat_number"), "vat_number", max_length=50),
            address=require_str(data.get("address"), "address"),
        )
    except Exception as exc:
        return error_response(exc)
    return jsonify(company.to_dict()), 201


@branches_bp.get("/branches")
@require_auth
def list_branches_route():
    company_id = request.args.get("company_id", type=int)
    branches = branch_service.list_branches(company_id=company_id)
    return jsonify([branch.to_dict() for branch in branches]), 200


@branches_bp.post("/branches")
@require_auth
@require_permission("MANAGE_USERS")
def create_branch_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        branch = branch_service.create_branch(
            company_id=coerce_id(data.get("company_id"), "company_id"),
            name=require_str(data.get("name"), "name", max_length=255),
            address=optional_str(data.get("address"), "address"),
            phone=optional_str(data.get("phone"), "phone", max_length=64),
        )
    except branch_service.BranchError as exc:
        return jsonify({"error": str(exc)}), 404
    except Exception as exc:
        return error_response(exc)
    return jsonify(branch.to_dict()), 201
