from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.container import build_container
from app.core.errors import AppError
from app.api import webhook, tools, oauth
from app.core.logger import setup_logging, logger
from contextlib import asynccontextmanager
from datetime import datetime

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting AI Receptionist Backend")
    if getattr(app.state, "container", None) is None:
        app.state.container = build_container(settings)
    yield
    # Shutdown
    logger.info("🛑 Shutting down backend")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.2.0",
    lifespan=lifespan
)

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"↩️ {exc.kind} on {request.url.path}: {exc.reason}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"🔥 UNHANDLED ERROR on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "internal_error", "detail": "An unexpected error occurred. Please contact support."}
    )

# Include routers
app.include_router(webhook.router, tags=["Webhook"])
app.include_router(tools.router, tags=["Tools"])
app.include_router(oauth.router, tags=["OAuth"])

@app.get("/")
async def health_check():
    return {'status': 'active', 'time': datetime.now().isoformat()}

@app.get("/health")
async def health_check_std():
    return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now().isoformat()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
