# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Point-of-sale API routes with permission enforcement"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import sales_service
from ..services.sales_service import SaleNotFoundError
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError, coerce_id, optional_str, require_json_object
from .errors import error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _date_range() -> tuple:
    try:
        start = parse_iso_datetime(request.args.get("start") or request.args.get("startDate"))
        end = parse_iso_datetime(request.args.get("end") or request.args.get("endDate"))
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")
    if start and end and start > end:
        raise ValidationError("start must be before end")
    return start, end


@sales_bp.post("")
@require_auth
@require_permission("MANAGE_SALES")
def create_sale_route():
    """
    Complete a POS sale.

    Body: {items: [{id|itemId, quantity, price}], payment_method, subtotal?,
    tax?, discount?, total?, customer_id?, customer_name?, customer_email?}

    Stock is checked for every line before anything is written; an oversold
    line rejects the whole sale.
    """
    try:
        payload = require_json_object(request.get_json(silent=True))
        customer_id = payload.get("customer_id", payload.get("customerId"))
        sale = sales_service.record_sale(
            line_items=payload.get("items"),
            payment_method=payload.get("payment_method") or payload.get("paymentMethod"),
            subtotal=payload.get("subtotal"),
            tax=payload.get("tax"),
            discount=payload.get("discount"),
            total=payload.get("total"),
            customer_id=coerce_id(customer_id, "customer_id") if customer_id not in (None, "") else None,
            customer_name=optional_str(
                payload.get("customer_name", payload.get("customerName")), "customer_name", max_length=100
            ),
            customer_email=optional_str(
                payload.get("customer_email", payload.get("customerEmail")), "customer_email", max_length=100
            ),
            actor_user_id=g.current_user.id,
            branch_id=g.branch_id,
        )
    except Exception as exc:
        return error_response(exc)
    return {"id": sale.id, "message": "Sale completed successfully"}, 201


@sales_bp.get("")
@require_auth
@require_permission("MANAGE_SALES")
def list_sales_route():
    try:
        start, end = _date_range()
        sales = sales_service.list_sales(branch_id=g.branch_id, start=start, end=end)
    except Exception as exc:
        return error_response(exc)
    return {"sales": [sale.to_dict() for sale in sales]}, 200


@sales_bp.get("/by-date")
@require_auth
@require_permission("MANAGE_SALES")
def sales_by_date_route():
    """Sales between ?startDate and ?endDate (both required), newest first."""
    try:
        start, end = _date_range()
        if start is None or end is None:
            raise ValidationError("Start date and end date are required")
        sales = sales_service.list_sales(branch_id=g.branch_id, start=start, end=sales_service.inclusive_end(end))
    except Exception as exc:
        return error_response(exc)
    return jsonify([sale.to_dict() for sale in sales]), 200


@sales_bp.get("/summary")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_summary_route():
    """Totals per day, ISO week or month (?period=daily|weekly|monthly)."""
    period = request.args.get("period", "daily")
    if period not in sales_service.SUMMARY_PERIODS:
        return {"error": f"period must be one of: {', '.join(sales_service.SUMMARY_PERIODS)}"}, 400

    try:
        start, end = _date_range()
        summary = sales_service.sales_summary(period=period, start=start, end=end, branch_id=g.branch_id)
    except Exception as exc:
        return error_response(exc)
    return {"period": period, "results": summary}, 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("MANAGE_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, branch_id=g.branch_id)
    except SaleNotFoundError as exc:
        return {"error": str(exc)}, 404
    except Exception as exc:
        return error_response(exc)
    return sale.to_dict(include_items=True), 200
