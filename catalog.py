import time
from datetime import datetime

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, parse_object_id, serialize
from errors import NotFound, ValidationError
from schemas import Product, ProductUpdateBody
from security import get_current_admin

router = APIRouter(prefix="/products", tags=["products"])


def get_product_or_404(db: Database, product_id) -> dict:
    product = db["product"].find_one({"_id": parse_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")
    return product


def placeholder_product() -> Product:
    return Product(
        name=f"Sample Product Name {int(time.time() * 1000)}",
        category="Sample Category",
        price=0,
        description="Sample description.",
        full_description="Sample full description.",
        images=["/images/placeholder.jpg"],
        count_in_stock=0,
        benefits=["Benefit 1", "Benefit 2"],
        usage="Mix and apply.",
        ingredients=["Ingredient 1"],
        size="100g",
        sku="SAMPLE-001",
    )


def _name_taken(db: Database, name: str, exclude_id=None) -> bool:
    query = {"name": name}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db["product"].find_one(query) is not None


def update_product(db: Database, product_id, body: ProductUpdateBody) -> dict:
    oid = parse_object_id(product_id, "Product")
    update = body.model_dump(exclude_none=True)
    if "name" in update and _name_taken(db, update["name"], oid):
        raise ValidationError("A product with this name already exists")
    update["updated_at"] = datetime.utcnow()
    try:
        product = db["product"].find_one_and_update(
            {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        raise ValidationError("A product with this name already exists")
    if not product:
        raise NotFound("Product not found")
    return product


@router.get("")
def list_products(featured: bool | None = None, db: Database = Depends(get_db)):
    query = {"is_featured": True} if featured else {}
    return serialize(list(db["product"].find(query)))


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return serialize(get_product_or_404(db, product_id))


@router.post("/admin", status_code=201)
def create_product(_: dict = Depends(get_current_admin), db: Database = Depends(get_db)):
    product_id = create_document(db, "product", placeholder_product())
    return serialize(get_product_or_404(db, product_id))


@router.put("/admin/{product_id}")
def edit_product(product_id: str, body: ProductUpdateBody, _: dict = Depends(get_current_admin),
                 db: Database = Depends(get_db)):
    return serialize(update_product(db, product_id, body))


@router.delete("/admin/{product_id}")
def delete_product(product_id: str, _: dict = Depends(get_current_admin), db: Database = Depends(get_db)):
    res = db["product"].delete_one({"_id": parse_object_id(product_id, "Product")})
    if res.deleted_count == 0:
        raise NotFound("Product not found")
    return {"message": "Product removed"}
