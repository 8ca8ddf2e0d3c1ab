"""
Order workflow: pricing, placement, cart reconciliation and status tracking.

Submitted line prices are tax-inclusive. The 5% tax is back-calculated from
the subtotal instead of being added on top.

Placing an order is two writes: the order insert, then deleting the buyer's
cart rows for the purchased products. They are not transactional; if the
cart cleanup fails the order stands and the failure is logged.
"""

import logging
import math
from datetime import datetime

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings, get_settings
from database import create_document, get_db, get_documents, parse_object_id, require_object_id, serialize
from errors import EmptyOrder, Forbidden, InvalidStatus, NotFound, ValidationError
from payments import RazorpayGateway, create_gateway_order, get_gateway, verify_payment_signature
from schemas import (
    ORDER_STATUSES,
    GatewayOrderBody,
    OrderCreateBody,
    OrderStatus,
    OrderStatusBody,
    PaymentVerifyBody,
)
from security import get_current_admin, get_current_user

log = logging.getLogger(__name__)

TAX_RATE = 0.05

# Forward-only graph used when ORDER_STATUS_POLICY=strict.
STRICT_TRANSITIONS = {
    "Pending": {"Ordered", "Cancelled"},
    "Ordered": {"Packed", "Shipped", "Delivered", "Cancelled"},
    "Packed": {"Shipped", "Delivered", "Cancelled"},
    "Shipped": {"Delivered"},
    "Delivered": set(),
    "Cancelled": set(),
}

router = APIRouter(prefix="/orders", tags=["orders"])


def round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def compute_prices(order_items, shipping_price: float = 0.0) -> dict:
    subtotal = sum(item.price * item.qty for item in order_items)
    items_price = round2(subtotal / (1 + TAX_RATE))
    tax_price = round2(subtotal - items_price)
    total_price = round2(items_price + tax_price + shipping_price)
    return {
        "items_price": items_price,
        "tax_price": tax_price,
        "shipping_price": shipping_price,
        "total_price": total_price,
    }


def is_gateway_payment(payment_method: str | None) -> bool:
    return (payment_method or "").lower() == "razorpay"


def place_order(db: Database, user: dict, body: OrderCreateBody) -> dict:
    if not body.order_items:
        raise EmptyOrder()

    items = []
    for item in body.order_items:
        line = item.model_dump()
        line["product"] = require_object_id(item.product, "product id")
        items.append(line)

    now = datetime.utcnow()
    paid = is_gateway_payment(body.payment_method)
    payment_result = body.payment_result.model_dump() if body.payment_result else {"id": "COD_ORDER", "status": "Pending"}
    doc = {
        "user": user["_id"],
        "order_items": items,
        "shipping_address": body.shipping_address.model_dump(),
        "payment_method": body.payment_method,
        "payment_result": payment_result,
        **compute_prices(body.order_items, body.shipping_price),
        "is_paid": paid,
        "paid_at": now if paid else None,
        "is_delivered": False,
        "delivered_at": None,
        "status": OrderStatus.ordered.value,
        "status_history": [
            {"status": OrderStatus.ordered.value, "updated_by": user["_id"], "note": "", "timestamp": now},
        ],
    }
    order_id = create_document(db, "order", doc)
    log.info("Order %s placed by %s (%s)", order_id, user["_id"], body.payment_method or "COD")

    purchased = list({line["product"] for line in items})
    try:
        db["cart"].delete_many({"user": user["_id"], "product": {"$in": purchased}})
    except PyMongoError:
        log.exception("Cart cleanup failed after order %s", order_id)

    return db["order"].find_one({"_id": parse_object_id(order_id, "Order")})


def check_transition(current: str, new_status: str, policy: str):
    if policy == "strict" and current != new_status and new_status not in STRICT_TRANSITIONS.get(current, set()):
        raise InvalidStatus(f"Cannot move order from {current} to {new_status}")


def update_order_status(db: Database, order_id, new_status: str, actor_id, note: str | None = None,
                        policy: str = "permissive") -> dict:
    if new_status not in ORDER_STATUSES:
        raise InvalidStatus()
    oid = parse_object_id(order_id, "Order")
    order = db["order"].find_one({"_id": oid}, {"status": 1})
    if not order:
        raise NotFound("Order not found")
    check_transition(order.get("status", OrderStatus.ordered.value), new_status, policy)

    now = datetime.utcnow()
    delivered = new_status == OrderStatus.delivered.value
    return db["order"].find_one_and_update(
        {"_id": oid},
        {
            "$set": {
                "status": new_status,
                "is_delivered": delivered,
                "delivered_at": now if delivered else None,
                "updated_at": now,
            },
            "$push": {"status_history": {"status": new_status, "updated_by": actor_id, "note": note or "", "timestamp": now}},
        },
        return_document=ReturnDocument.AFTER,
    )


def mark_delivered(db: Database, order_id, actor_id, policy: str = "permissive") -> dict:
    oid = parse_object_id(order_id, "Order")
    order = db["order"].find_one({"_id": oid}, {"is_delivered": 1})
    if not order:
        raise NotFound("Order not found")
    if order.get("is_delivered"):
        raise ValidationError("Order is already delivered")
    return update_order_status(db, oid, OrderStatus.delivered.value, actor_id, "Marked delivered by admin.", policy)


def get_order(db: Database, order_id, requester: dict) -> dict:
    order = db["order"].find_one({"_id": parse_object_id(order_id, "Order")})
    if not order:
        raise NotFound("Order not found")
    if not requester.get("is_admin") and order["user"] != requester["_id"]:
        raise Forbidden("Not authorized to view this order")
    return order


def list_user_orders(db: Database, user_id) -> list:
    return get_documents(db, "order", {"user": user_id})


def list_all_orders(db: Database) -> list:
    orders = get_documents(db, "order")
    user_ids = list({o["user"] for o in orders})
    users = {
        u["_id"]: {"_id": u["_id"], "name": u.get("name"), "email": u.get("email")}
        for u in db["user"].find({"_id": {"$in": user_ids}}, {"name": 1, "email": 1})
    }
    for o in orders:
        o["user"] = users.get(o["user"], o["user"])
    return orders


# ----------------------- Routes -----------------------
@router.post("/razorpay/create-order")
def razorpay_create_order(
    body: GatewayOrderBody,
    _: dict = Depends(get_current_user),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    return create_gateway_order(gateway, body.total_price)


@router.post("/razorpay/verify")
def razorpay_verify(
    body: PaymentVerifyBody,
    _: dict = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    verify_payment_signature(body.order_id, body.payment_id, body.signature, settings.razorpay_key_secret)
    return {"success": True, "message": "Payment verified successfully."}


@router.post("", status_code=201)
def create_order(body: OrderCreateBody, current=Depends(get_current_user), db: Database = Depends(get_db)):
    return serialize(place_order(db, current, body))


@router.get("")
def all_orders(_: dict = Depends(get_current_admin), db: Database = Depends(get_db)):
    return serialize(list_all_orders(db))


@router.get("/myorders")
def my_orders(current=Depends(get_current_user), db: Database = Depends(get_db)):
    return serialize(list_user_orders(db, current["_id"]))


@router.get("/{order_id}")
def order_detail(order_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
    return serialize(get_order(db, order_id, current))


@router.put("/{order_id}/status")
def order_status(
    order_id: str,
    body: OrderStatusBody,
    admin: dict = Depends(get_current_admin),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = update_order_status(db, order_id, body.status, admin["_id"], body.note, settings.order_status_policy)
    return serialize(order)


@router.put("/{order_id}/deliver")
def order_deliver(
    order_id: str,
    admin: dict = Depends(get_current_admin),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return serialize(mark_delivered(db, order_id, admin["_id"], settings.order_status_policy))
