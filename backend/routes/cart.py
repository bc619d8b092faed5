from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import get_db
from config.constants import ROLE_CUSTOMER
from utils.guards import parse_object_id
from utils.security import require_role

router = APIRouter(prefix="/api/cart", tags=["Cart"])


class CartAddItem(BaseModel):
    product_id: str
    quantity: int = Field(1, gt=0)


class CartUpdateItem(BaseModel):
    quantity: int = Field(..., gt=0)


async def _load_cart(db, customer_id) -> dict:
    cart = await db.carts.find_one({"customer_id": customer_id})
    return cart or {"customer_id": customer_id, "items": []}


async def _save_items(db, customer_id, items: list):
    now = datetime.utcnow()
    await db.carts.update_one(
        {"customer_id": customer_id},
        {
            "$set": {"items": items, "updated_at": now},
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
    )


async def _sellable_product(db, product_id, quantity: int) -> dict:
    product = await db.products.find_one({"_id": product_id, "active": {"$ne": False}})
    if not product:
        raise HTTPException(404, "Product not found")

    if quantity > product.get("stock", 0):
        raise HTTPException(400, "Product is out of stock")

    return product


@router.get("")
async def get_cart(
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    cart = await _load_cart(db, customer["_id"])
    items = []
    subtotal = 0

    for item in cart.get("items", []):
        product = await db.products.find_one({"_id": item["product_id"]})
        if not product:
            continue

        qty = int(item.get("quantity", 1))
        unit_price = float(product.get("price", 0))
        line_total = round(unit_price * qty, 2)
        subtotal += line_total

        items.append({
            "product_id": str(product["_id"]),
            "name": product.get("name"),
            "brand": product.get("brand"),
            "images": product.get("images") or [],
            "quantity": qty,
            "price": unit_price,
            "line_total": line_total,
            "stock": product.get("stock", 0),
        })

    return {
        "success": True,
        "data": {
            "count": len(items),
            "items": items,
            "subtotal": round(subtotal, 2),
        },
    }


@router.post("/add")
async def add_to_cart(
    data: CartAddItem,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    product_id = parse_object_id(data.product_id, "product_id")
    cart = await _load_cart(db, customer["_id"])
    items = cart.get("items", [])

    existing = next((i for i in items if i["product_id"] == product_id), None)
    quantity = data.quantity + (existing["quantity"] if existing else 0)

    product = await _sellable_product(db, product_id, quantity)

    if existing:
        existing["quantity"] = quantity
        existing["price"] = float(product.get("price", 0))
    else:
        items.append({
            "product_id": product_id,
            "quantity": quantity,
            "price": float(product.get("price", 0)),
            "added_at": datetime.utcnow(),
        })

    await _save_items(db, customer["_id"], items)
    return {"success": True, "message": "Item added to cart"}


@router.put("/item/{product_id}")
async def update_cart_item(
    product_id: str,
    data: CartUpdateItem,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    pid = parse_object_id(product_id, "product_id")
    cart = await _load_cart(db, customer["_id"])
    items = cart.get("items", [])

    item = next((i for i in items if i["product_id"] == pid), None)
    if not item:
        raise HTTPException(404, "Item not found in cart")

    await _sellable_product(db, pid, data.quantity)
    item["quantity"] = data.quantity

    await _save_items(db, customer["_id"], items)
    return {"success": True, "message": "Cart item updated"}


@router.delete("/item/{product_id}")
async def remove_cart_item(
    product_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    pid = parse_object_id(product_id, "product_id")

    res = await db.carts.update_one(
        {"customer_id": customer["_id"]},
        {"$pull": {"items": {"product_id": pid}}},
    )
    if res.modified_count == 0:
        raise HTTPException(404, "Item not found in cart")

    return {"success": True, "message": "Item removed"}


@router.delete("")
async def clear_cart(
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    await _save_items(db, customer["_id"], [])
    return {"success": True, "message": "Cart cleared"}
