# product_service/main.py
from fastapi import FastAPI
from fastapi.responses import JSONResponse

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    "p-keyboard": {
        "id": "p-keyboard",
        "name": "Keyboard",
        "price": "199.99",
        "inventory": {"availableQuantity": 25, "status": "in_stock"},
    },
    "p-mouse": {
        "id": "p-mouse",
        "name": "Mouse",
        "price": "59.00",
        "discountPrice": "49.50",
        "inventory": {"availableQuantity": 3, "status": "low_stock"},
    },
    "p-monitor": {
        "id": "p-monitor",
        "name": "Monitor",
        "price": "899.00",
        "inventory": {"availableQuantity": 0, "status": "out_of_stock"},
    },
}


@app.get("/health")
def health():
    return {"success": True, "status": "healthy"}


@app.get("/api/v1/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "Product not found", "data": None},
        )
    return {"success": True, "message": "OK", "data": product}
