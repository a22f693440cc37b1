import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resale_connector.config import settings
from resale_connector.routers import ebay, imports, records
from resale_connector.utils.logger import logger

app = FastAPI(title="Resale Connector API", version="1.0.0")

origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
if settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logger.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
    except Exception as e:
        logger.exception("Unhandled error rid=%s: %s", rid, str(e))
        error_resp = JSONResponse(
            {"error": "internal_error", "rid": rid, "message": str(e), "type": type(e).__name__},
            status_code=500,
        )
        error_resp.headers["X-Request-ID"] = rid
        return error_resp
    logger.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
    resp.headers["X-Request-ID"] = rid
    return resp


app.include_router(ebay.router)
app.include_router(imports.router)
app.include_router(records.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Resale Connector API starting up (eBay environment: %s)", settings.EBAY_ENVIRONMENT)
    if not settings.ebay_configured:
        logger.warning("EBAY_CLIENT_ID / EBAY_CLIENT_SECRET not set; eBay connect is disabled")


@app.get("/")
async def root():
    return {"message": "Resale Connector API", "version": "1.0.0"}


@app.get("/healthz")
async def health_check():
    return {"status": "ok"}
