# campaigner/main.py
"""
FastAPI application for the marketing campaign broadcast service.
JWT (or development header) authenticated, multi-tenant.
"""
import logging
import re
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campaigner.core.config import JWT_SECRET_KEY, TWILIO_ACCOUNT_SID, RESEND_API_KEY
from campaigner.core.exceptions import CampaignError
from campaigner.core.logging_config import setup_logging
from campaigner.db.session import init_db, test_db_connection
from campaigner.api.v1.router import api_router

setup_logging()
log = logging.getLogger("campaigner")
log.info("=" * 80)
log.info("🚀 Application starting - Logging to console and logs/")
log.info("=" * 80)

# Initialize database
try:
    init_db()
    if test_db_connection():
        log.info("✅ Database initialized")
except Exception as e:
    log.error(f"❌ Database error: {e}")

# FastAPI app
app = FastAPI(
    title="Campaigner - Marketing Broadcasts",
    description="Multi-tenant SMS and email marketing campaigns",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# ────────────────────────────────────────────
# CORS Configuration
# ────────────────────────────────────────────
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

LOCAL_ORIGIN_RE = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=LOCAL_ORIGIN_RE.pattern,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Tenant-Id", "Authorization", "Content-Type"],
    max_age=86400,
)

# Include API routes
app.include_router(api_router, prefix="/api")


# ────────────────────────────────────────────
# Public routes
# ────────────────────────────────────────────

@app.get("/healthz", tags=["System"])
def health():
    """Health check endpoint"""
    db_ok = test_db_connection()
    return {
        "status": "ok" if db_ok else "degraded",
        "database_ok": db_ok,
        "jwt_enabled": bool(JWT_SECRET_KEY),
        "twilio_ok": bool(TWILIO_ACCOUNT_SID),
        "resend_ok": bool(RESEND_API_KEY),
    }


# ────────────────────────────────────────────
# Exception Handlers
# ────────────────────────────────────────────

@app.exception_handler(CampaignError)
async def campaign_error_handler(request: Request, exc: CampaignError):
    """Domain errors that escaped a route"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8100)
