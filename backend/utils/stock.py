from fastapi import HTTPException


async def reserve_stock(db, items: list[dict]):
    """
    Decrement stock line by line. A line that cannot be covered undoes the
    lines already taken and fails the checkout.
    """
    reserved = []
    for item in items:
        result = await db.products.update_one(
            {"_id": item["product_id"], "stock": {"$gte": item["quantity"]}},
            {"$inc": {"stock": -item["quantity"]}},
        )
        if result.modified_count == 0:
            await release_stock(db, reserved)
            raise HTTPException(400, f"Insufficient stock for {item['name']}")
        reserved.append(item)


async def release_stock(db, items: list[dict]):
    for item in items:
        await db.products.update_one(
            {"_id": item["product_id"]},
            {"$inc": {"stock": item["quantity"]}},
        )
