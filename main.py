import os
import re
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Body
from fastapi.middleware.cors import CORSMiddleware

import database
from database import DatabaseUnavailable

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        database.ensure_initialized()
    except DatabaseUnavailable:
        logger.warning("DATABASE_URL not set, store API will answer 500 until it is")
    yield


app = FastAPI(title="Storefront Sync API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------- Utilities ----------------------

def check_key(key: str) -> str:
    if not KEY_PATTERN.match(key):
        raise HTTPException(status_code=400, detail="Invalid key")
    return key

# ---------------------- Root & Health ----------------------

@app.get("/")
def read_root():
    return {"message": "Storefront sync API running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = database.db.name
            response["connection_status"] = "Connected"
            try:
                response["collections"] = sorted(database.read_snapshot().keys())
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response

# ---------------------- Schemas Endpoint ----------------------

@app.get("/schema")
def get_schema():
    try:
        import schemas as s
        def model_fields(m):
            return {k: str(v.annotation) for k, v in getattr(m, "model_fields", {}).items()}
        return {
            "collections": list(s.COLLECTION_NAMES),
            "models": {
                "product": model_fields(s.Product),
                "variant": model_fields(s.Variant),
                "cart_item": model_fields(s.CartItem),
                "coupon": model_fields(s.Coupon),
                "banner": model_fields(s.Banner),
                "settings": model_fields(s.StoreSettings),
                "order": model_fields(s.Order),
            }
        }
    except Exception as e:
        return {"error": str(e)}

# ---------------------- Collections ----------------------

@app.get("/api/data/{key}")
def read_data(key: str):
    check_key(key)
    try:
        return database.read_collection(key)
    except DatabaseUnavailable as e:
        raise HTTPException(status_code=500, detail=str(e))

@app.post("/api/data/{key}")
def write_data(key: str, value: Any = Body(None)):
    check_key(key)
    try:
        database.write_collection(key, value)
    except DatabaseUnavailable as e:
        raise HTTPException(status_code=500, detail=str(e))
    size = len(value) if isinstance(value, (list, dict)) else 1
    logger.info("Updated %s (%d entries)", key, size)
    return {"success": True, "message": f"Updated {key}"}

@app.get("/api/full-sync")
def full_sync():
    try:
        return database.read_snapshot()
    except DatabaseUnavailable as e:
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
