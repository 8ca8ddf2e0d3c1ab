"""
Profile, cart and wishlist endpoints, plus admin user management.

Cart rows are keyed by (user, product). Any mutation that would leave a row
at zero or below deletes it, and every cart mutation answers with the full
cart rebuilt from the store.
"""

from datetime import datetime

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from catalog import get_product_or_404
from database import get_db, parse_object_id, serialize
from errors import DuplicateUser, NotFound, ValidationError
from schemas import CartAddBody, CartQuantityBody, ProfileUpdateBody
from security import get_current_admin, get_current_user, get_password_hash, strip_private

router = APIRouter(prefix="/users", tags=["users"])


# ====================== PROFILE ======================
def profile_payload(user: dict) -> dict:
    return serialize({
        "_id": user["_id"],
        "name": user["name"],
        "email": user.get("email"),
        "phone": user["phone"],
        "is_admin": user.get("is_admin", False),
        "addresses": user.get("addresses", []),
        "profile_image": user.get("profile_image"),
    })


def update_profile(db: Database, user_id: ObjectId, body: ProfileUpdateBody) -> dict:
    update = {}
    for field in ("name", "phone"):
        value = getattr(body, field)
        if value is None:
            continue
        if not value.strip():
            raise ValidationError(f"{field.capitalize()} cannot be empty")
        update[field] = value.strip()
    if body.profile_image is not None:
        update["profile_image"] = body.profile_image
    if body.email is not None:
        update["email"] = str(body.email).lower()

    clauses = [{k: update[k]} for k in ("phone", "email") if k in update]
    if clauses and db["user"].find_one({"_id": {"$ne": user_id}, "$or": clauses}):
        raise DuplicateUser("Another account already uses this phone or email.")

    if body.password:
        update["password_hash"] = get_password_hash(body.password)
    if body.addresses is not None:
        update["addresses"] = [
            {
                **addr.model_dump(exclude={"id"}),
                "_id": ObjectId(addr.id) if addr.id and ObjectId.is_valid(addr.id) else ObjectId(),
            }
            for addr in body.addresses
        ]
    update["updated_at"] = datetime.utcnow()

    try:
        user = db["user"].find_one_and_update(
            {"_id": user_id}, {"$set": update}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        raise DuplicateUser("Another account already uses this phone or email.")
    if not user:
        raise NotFound("User not found")
    return user


# ====================== CART ======================
def cart_view(db: Database, user_id: ObjectId) -> list:
    items = list(db["cart"].find({"user": user_id}).sort("created_at", 1))
    products = {
        p["_id"]: p for p in db["product"].find({"_id": {"$in": [it["product"] for it in items]}})
    }
    cart = []
    for it in items:
        product = products.get(it["product"])
        if product:
            name, price = product["name"], product["price"]
            image = (product.get("images") or [it.get("image")])[0]
        else:
            # product since deleted from the catalog; fall back to the snapshot
            name, price, image = it["name"], it["price"], it.get("image")
        cart.append({
            "_id": str(it["product"]),
            "name": name,
            "price": price,
            "image": image,
            "quantity": it["quantity"],
            "size": it.get("size"),
        })
    return cart


def add_to_cart(db: Database, user_id: ObjectId, product_id, quantity: int):
    product = get_product_or_404(db, product_id)
    existing = db["cart"].find_one({"user": user_id, "product": product["_id"]})
    now = datetime.utcnow()
    if existing:
        new_qty = int(existing["quantity"]) + int(quantity)
        if new_qty <= 0:
            db["cart"].delete_one({"_id": existing["_id"]})
        else:
            db["cart"].update_one({"_id": existing["_id"]}, {"$set": {"quantity": new_qty, "updated_at": now}})
        return
    if quantity <= 0:
        raise ValidationError("Quantity must be positive")
    db["cart"].insert_one({
        "user": user_id,
        "product": product["_id"],
        "name": product["name"],
        "image": (product.get("images") or [None])[0],
        "price": product["price"],
        "quantity": int(quantity),
        "size": product.get("size"),
        "created_at": now,
        "updated_at": now,
    })


def set_cart_quantity(db: Database, user_id: ObjectId, product_id, quantity: int):
    product_oid = parse_object_id(product_id, "Item")
    item = db["cart"].find_one({"user": user_id, "product": product_oid})
    if not item:
        raise NotFound("Item not found in cart")
    if quantity <= 0:
        db["cart"].delete_one({"_id": item["_id"]})
    else:
        db["cart"].update_one({"_id": item["_id"]}, {"$set": {"quantity": quantity, "updated_at": datetime.utcnow()}})


def remove_from_cart(db: Database, user_id: ObjectId, product_id):
    db["cart"].delete_one({"user": user_id, "product": parse_object_id(product_id, "Item")})


# ====================== WISHLIST ======================
def wishlist_products(db: Database, user_id: ObjectId) -> list:
    user = db["user"].find_one({"_id": user_id}, {"wishlist": 1})
    if not user:
        raise NotFound("User not found")
    ids = user.get("wishlist", [])
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}})}
    return [products[i] for i in ids if i in products]


def toggle_wishlist(db: Database, user_id: ObjectId, product_id) -> bool:
    """Returns True when the product was added, False when it was removed."""
    product = get_product_or_404(db, product_id)
    user = db["user"].find_one({"_id": user_id}, {"wishlist": 1})
    if not user:
        raise NotFound("User not found")
    if product["_id"] in user.get("wishlist", []):
        db["user"].update_one({"_id": user_id}, {"$pull": {"wishlist": product["_id"]}})
        return False
    db["user"].update_one({"_id": user_id}, {"$addToSet": {"wishlist": product["_id"]}})
    return True


# ====================== ROUTES ======================
@router.get("")
def list_users(_: dict = Depends(get_current_admin), db: Database = Depends(get_db)):
    return serialize([strip_private(u) for u in db["user"].find({})])


@router.get("/profile")
def get_profile(current=Depends(get_current_user)):
    return profile_payload(current)


@router.put("/profile")
def put_profile(body: ProfileUpdateBody, current=Depends(get_current_user), db: Database = Depends(get_db)):
    return profile_payload(update_profile(db, current["_id"], body))


@router.get("/cart")
def get_cart(current=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"cart": cart_view(db, current["_id"])}


@router.post("/cart")
def post_cart(body: CartAddBody, current=Depends(get_current_user), db: Database = Depends(get_db)):
    add_to_cart(db, current["_id"], body.product_id, body.quantity)
    return {"cart": cart_view(db, current["_id"]), "message": "Item added to cart successfully"}


@router.put("/cart/{product_id}")
def put_cart(product_id: str, body: CartQuantityBody, current=Depends(get_current_user),
             db: Database = Depends(get_db)):
    set_cart_quantity(db, current["_id"], product_id, body.quantity)
    return {"cart": cart_view(db, current["_id"]), "message": "Cart quantity updated successfully"}


@router.delete("/cart/{product_id}")
def delete_cart(product_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
    remove_from_cart(db, current["_id"], product_id)
    return {"cart": cart_view(db, current["_id"]), "message": "Item removed from cart successfully"}


@router.get("/wishlist")
def get_wishlist(current=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"wishlist": serialize(wishlist_products(db, current["_id"]))}


@router.api_route("/wishlist/{product_id}", methods=["POST", "DELETE"])
def wishlist_toggle(product_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
    added = toggle_wishlist(db, current["_id"], product_id)
    return {
        "wishlist": serialize(wishlist_products(db, current["_id"])),
        "message": "Product added to wishlist" if added else "Product removed from wishlist",
    }


@router.delete("/{user_id}")
def delete_user(user_id: str, _: dict = Depends(get_current_admin), db: Database = Depends(get_db)):
    user = db["user"].find_one({"_id": parse_object_id(user_id, "User")})
    if not user:
        raise NotFound("User not found")
    if user.get("is_admin"):
        raise ValidationError("Cannot delete an administrator user")
    db["user"].delete_one({"_id": user["_id"]})
    return {"message": "User removed successfully"}
