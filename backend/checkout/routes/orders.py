# Overview: Flask API routes for orders; checkout entry point, lookups and status changes.

# backend/checkout/routes/orders.py
"""
Order routes.

POST /api/orders is the checkout entry point. The client runs
/api/payment/process first and sends the outcome as `transactionResult`;
omitting it creates a `pending` order that the gateway later resolves via
POST /api/orders/<orderNumber>/payment-result.

Responses never include the full card number or the CVV.
"""
from flask import Blueprint, current_app, request

from ..services.inventory_service import InsufficientInventoryError, ProductNotFoundError
from ..services.order_numbers import OrderNumberGenerationExhausted
from ..services.order_service import (
    DEFAULT_LIST_LIMIT,
    create_order,
    get_order,
    get_order_by_id,
    list_orders,
    resend_order_email,
)
from ..services.order_status import (
    InvalidStatusTransitionError,
    OrderNotFoundError,
    allowed_next_statuses,
    apply_payment_result,
    update_order_status,
)
from ..validation import (
    ValidationError,
    json_object,
    parse_positive_int,
    validate_order_number,
    validate_order_payload,
    validate_order_status,
    validate_transaction_result,
)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
def list_orders_route():
    """
    Query params:
    - status: optional status filter
    - limit: optional, default 50 (max 200)
    """
    status = request.args.get("status")
    try:
        if status:
            status = validate_order_status(status)
        limit = DEFAULT_LIST_LIMIT
        if request.args.get("limit"):
            limit = parse_positive_int(request.args.get("limit"), "limit")
    except ValidationError as e:
        return e.to_dict(), 400

    orders = list_orders(status=status, limit=limit)
    return {"orders": [o.to_dict() for o in orders], "count": len(orders)}


@orders_bp.post("")
def create_order_route():
    payload = request.get_json(silent=True)
    try:
        order_request = validate_order_payload(
            payload, max_quantity=int(current_app.config.get("MAX_ORDER_QUANTITY", 10))
        )
    except ValidationError as e:
        return e.to_dict(), 400

    try:
        order = create_order(order_request)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientInventoryError as e:
        return e.to_dict(), 409
    except ValidationError as e:
        return e.to_dict(), 400
    except OrderNumberGenerationExhausted:
        current_app.logger.error("Order number allocation exhausted")
        return {"error": "Could not allocate an order number. Please retry."}, 500
    except Exception:
        current_app.logger.exception("Failed to create order")
        return {"error": "Internal server error"}, 500

    data = order.to_dict()
    return {
        "orderNumber": data["orderNumber"],
        "status": data["status"],
        "total": data["total"],
        "totalCents": data["totalCents"],
        "customer": data["customer"],
        "product": data["product"],
        "emailSent": data["emailSent"],
    }, 201


@orders_bp.get("/id/<int:order_id>")
def get_order_by_id_route(order_id: int):
    try:
        order = get_order_by_id(order_id)
    except OrderNotFoundError as e:
        return {"error": str(e)}, 404
    return order.to_dict()


@orders_bp.get("/<order_number>")
def get_order_route(order_number: str):
    try:
        order = get_order(validate_order_number(order_number))
    except ValidationError as e:
        return e.to_dict(), 400
    except OrderNotFoundError as e:
        return {"error": str(e)}, 404
    return order.to_dict()


@orders_bp.put("/<order_number>/status")
def update_order_status_route(order_number: str):
    """Administrative transition. Body: {status}."""
    try:
        payload = json_object(request.get_json(silent=True))
        order_number = validate_order_number(order_number)
        new_status = validate_order_status(payload.get("status"))
        change = update_order_status(order_number, new_status)
    except ValidationError as e:
        return e.to_dict(), 400
    except (OrderNotFoundError, ProductNotFoundError) as e:
        return {"error": str(e)}, 404
    except InsufficientInventoryError as e:
        return e.to_dict(), 409
    except InvalidStatusTransitionError as e:
        return {"error": str(e), "details": {"allowedStatuses": allowed_next_statuses(e.old_status)}}, 409
    except Exception:
        current_app.logger.exception("Failed to update status for order %s", order_number)
        return {"error": "Internal server error"}, 500

    return change.to_dict()


@orders_bp.post("/<order_number>/payment-result")
def payment_result_route(order_number: str):
    """Gateway callback for pending orders. Body: {transactionResult, transactionId?}."""
    try:
        payload = json_object(request.get_json(silent=True))
        transaction_id = payload.get("transactionId")
        order_number = validate_order_number(order_number)
        result = validate_transaction_result(payload.get("transactionResult"), required=True)
        if transaction_id is not None and not isinstance(transaction_id, str):
            raise ValidationError("transactionId must be a string")
        change = apply_payment_result(order_number, result, transaction_id)
    except ValidationError as e:
        return e.to_dict(), 400
    except (OrderNotFoundError, ProductNotFoundError) as e:
        return {"error": str(e)}, 404
    except InsufficientInventoryError as e:
        return e.to_dict(), 409
    except InvalidStatusTransitionError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to apply payment result for order %s", order_number)
        return {"error": "Internal server error"}, 500

    return change.to_dict()


@orders_bp.post("/<order_number>/resend-email")
def resend_email_route(order_number: str):
    try:
        order_number = validate_order_number(order_number)
        sent = resend_order_email(order_number)
    except ValidationError as e:
        return e.to_dict(), 400
    except OrderNotFoundError as e:
        return {"error": str(e)}, 404
    return {"orderNumber": order_number, "emailSent": sent}
