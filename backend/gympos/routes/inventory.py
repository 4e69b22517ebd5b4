# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory management routes.

SECURITY: All routes require authentication.
- View operations require VIEW_INVENTORY permission
- Item edits, purchases, adjustments and bulk transactions require MANAGE_INVENTORY
- Reconciliation requires VIEW_REPORTS

Every quantity change goes through the stock ledger service; these routes
only parse input, pass the session's branch scope and shape the response.
Request keys follow the dashboard's camelCase (itemId, customerSupplier,
paymentStatus); snake_case aliases are accepted.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..validation import (
    ValidationError,
    coerce_id,
    coerce_int,
    optional_str,
    parse_money,
    require_json_object,
    require_str,
)
from .errors import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _pick(payload: dict, *keys):
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _item_fields(payload: dict, *, partial: bool) -> dict:
    """Parse item master data. Quantity is handled separately."""
    fields = {}

    if not partial or "name" in payload:
        fields["name"] = require_str(payload.get("name"), "name", max_length=100)
    if not partial or "price" in payload:
        fields["price"] = parse_money(payload.get("price"), "price", required=True)
    if not partial or "cost" in payload:
        fields["cost"] = parse_money(payload.get("cost"), "cost", required=True)
    if "sku" in payload:
        fields["sku"] = optional_str(payload.get("sku"), "sku", max_length=50)

    for field, keys, max_length in (
        ("description", ("description",), None),
        ("barcode", ("barcode",), 100),
        ("category", ("category",), 50),
        ("image_src", ("imageSrc", "image_src"), None),
    ):
        if any(key in payload for key in keys):
            fields[field] = optional_str(_pick(payload, *keys), field, max_length=max_length)
    return fields


@inventory_bp.get("")
@inventory_bp.get("/items")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_items_route():
    from ..services.inventory_service import list_items

    try:
        items = list_items(branch_id=g.branch_id)
    except Exception as exc:
        return error_response(exc)
    return {"items": [item.to_dict() for item in items]}, 200


@inventory_bp.get("/items/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    from ..services.inventory_service import get_item

    try:
        item = get_item(item_id, branch_id=g.branch_id)
    except Exception as exc:
        return error_response(exc)
    return item.to_dict(), 200


@inventory_bp.post("/items")
@require_auth
@require_permission("MANAGE_INVENTORY")
def create_item_route():
    """
    Create an item.

    A positive starting quantity is recorded as a `beginning` ledger entry.
    """
    from ..services.inventory_service import create_item

    try:
        payload = require_json_object(request.get_json(silent=True))
        fields = _item_fields(payload, partial=False)
        quantity = payload.get("quantity")
        quantity = 0 if quantity in (None, "") else coerce_int(quantity, "quantity")
        if quantity < 0:
            raise ValidationError("quantity must be >= 0")

        item = create_item(
            **fields,
            quantity=quantity,
            branch_id=g.branch_id,
            actor_user_id=g.current_user.id,
        )
    except Exception as exc:
        return error_response(exc)
    return item.to_dict(), 201


@inventory_bp.put("/items/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_item_route(item_id: int):
    """Edit item master data. Quantity in the payload is rejected."""
    from ..services.inventory_service import update_item

    try:
        payload = require_json_object(request.get_json(silent=True))
        if "quantity" in payload:
            raise ValidationError("quantity cannot be edited directly; record a transaction instead")
        fields = _item_fields(payload, partial=True)
        item = update_item(item_id, branch_id=g.branch_id, **fields)
    except Exception as exc:
        return error_response(exc)
    return item.to_dict(), 200


@inventory_bp.delete("/items/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def delete_item_route(item_id: int):
    from ..services.inventory_service import delete_item

    try:
        delete_item(item_id, branch_id=g.branch_id)
    except Exception as exc:
        return error_response(exc)
    return {"message": "Item deleted successfully"}, 200


@inventory_bp.get("/transactions")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_transactions_route():
    """Most recent ledger entries visible to the session's branch."""
    from ..services.inventory_service import list_transactions

    try:
        raw_limit = request.args.get("limit")
        limit = 100 if raw_limit is None else coerce_int(raw_limit, "limit")
        if limit <= 0 or limit > 1000:
            raise ValidationError("limit must be between 1 and 1000")
        transactions = list_transactions(branch_id=g.branch_id, limit=limit)
    except Exception as exc:
        return error_response(exc)
    return {"transactions": [tx.to_dict() for tx in transactions]}, 200


@inventory_bp.post("/transactions")
@require_auth
@require_permission("MANAGE_INVENTORY")
def record_transaction_route():
    """
    Record a single ledger entry.

    Body: {itemId, type, quantity, price?, notes?, customerSupplier?, paymentStatus?}
    """
    from ..services.stock_ledger_service import record_transaction

    try:
        payload = require_json_object(request.get_json(silent=True))
        tx = record_transaction(
            item_id=coerce_id(_pick(payload, "itemId", "item_id"), "itemId"),
            kind=require_str(payload.get("type"), "type"),
            quantity=payload.get("quantity"),
            price=parse_money(payload.get("price"), "price"),
            notes=optional_str(payload.get("notes"), "notes"),
            customer_supplier=optional_str(
                _pick(payload, "customerSupplier", "customer_supplier"), "customerSupplier", max_length=100
            ),
            payment_status=optional_str(
                _pick(payload, "paymentStatus", "payment_status"), "paymentStatus", max_length=50
            ),
            actor_user_id=g.current_user.id,
            branch_id=g.branch_id,
        )
    except Exception as exc:
        return error_response(exc)
    return tx.to_dict(), 201


@inventory_bp.post("/bulk-transactions")
@require_auth
@require_permission("MANAGE_INVENTORY")
def record_bulk_transaction_route():
    """
    Record a multi-item purchase or sale atomically.

    Body: {type: purchase|sale, items: [{itemId, quantity, price?}], notes?, ...}
    """
    from ..services.stock_ledger_service import record_bulk_transaction

    try:
        payload = require_json_object(request.get_json(silent=True))
        created = record_bulk_transaction(
            kind=require_str(payload.get("type"), "type"),
            items=payload.get("items"),
            notes=optional_str(payload.get("notes"), "notes"),
            customer_supplier=optional_str(
                _pick(payload, "customerSupplier", "customer_supplier"), "customerSupplier", max_length=100
            ),
            payment_status=optional_str(
                _pick(payload, "paymentStatus", "payment_status"), "paymentStatus", max_length=50
            ),
            actor_user_id=g.current_user.id,
            branch_id=g.branch_id,
        )
    except Exception as exc:
        return error_response(exc)
    return {"success": True, "transactions": [tx.to_dict() for tx in created]}, 201


@inventory_bp.get("/items/<int:item_id>/transactions")
@require_auth
@require_permission("VIEW_INVENTORY")
def item_transactions_route(item_id: int):
    from ..services.inventory_service import list_item_transactions

    try:
        transactions = list_item_transactions(item_id, branch_id=g.branch_id)
    except Exception as exc:
        return error_response(exc)
    return {"transactions": [tx.to_dict() for tx in transactions]}, 200


@inventory_bp.get("/items/<int:item_id>/reconcile")
@require_auth
@require_permission("VIEW_REPORTS")
def reconcile_item_route(item_id: int):
    """Compare the cached quantity with the ledger-derived one."""
    from ..services.inventory_service import get_item
    from ..services.stock_ledger_service import derive_current_quantity

    try:
        item = get_item(item_id, branch_id=g.branch_id)
        derived = derive_current_quantity(item_id)
    except Exception as exc:
        return error_response(exc)
    return {
        "itemId": str(item.id),
        "quantity": item.quantity,
        "ledgerQuantity": derived,
        "inSync": derived == item.quantity,
    }, 200
