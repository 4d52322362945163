"""
EMS API: JWT auth and CRUD for employees, departments, locations, projects and tasks.
All routes under /api. Port 8080.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ems_api.audit import router as audit_router
from ems_api.database import SessionLocal, init_db
from ems_api.errors import register_exception_handlers
from ems_api.routers.assignments import router as assignments_router
from ems_api.routers.auth import router as auth_router
from ems_api.routers.resources import routers as resource_routers
from ems_api.seed import seed_from_env

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the admin from env on startup."""
    init_db()
    db = SessionLocal()
    try:
        seed_from_env(db)
    finally:
        db.close()
    yield


app = FastAPI(title="EMS API", version="1.0.0", lifespan=lifespan)
register_exception_handlers(app)
app.include_router(auth_router, prefix=API_PREFIX)
for resource_router in resource_routers:
    app.include_router(resource_router, prefix=API_PREFIX)
app.include_router(assignments_router, prefix=API_PREFIX)
app.include_router(audit_router, prefix=API_PREFIX)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "ems_api"}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "ems_api.main:app",
        host="127.0.0.1",
        port=8080,
        reload=True,
    )
