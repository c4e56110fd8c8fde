from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import os
import time
import logging

from bulk_entry.api.routes import catalog, excel, results

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Bulk Result Entry API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("BULK_ENTRY_CORS_ORIGINS", "http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.perf_counter()
    logger.info("REQUEST  %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    logger.info("RESPONSE %s %s — status: %d, time: %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response

app.include_router(catalog.router, prefix="/api")
app.include_router(results.router, prefix="/api")
app.include_router(excel.router, prefix="/api")


@app.get("/")
def root():
    return {"status": "ok", "message": "Bulk Result Entry API"}


def run():
    import uvicorn

    uvicorn.run(
        "bulk_entry.api.main:app",
        host=os.environ.get("BULK_ENTRY_HOST", "127.0.0.1"),
        port=int(os.environ.get("BULK_ENTRY_PORT", "8000")),
    )
