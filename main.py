from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import dispose_db, init_db
from api.admin import router as admin_router
from api.drafts import router as drafts_router
from api.errors import register_error_handlers
from utils.log import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    yield
    await dispose_db()


app = FastAPI(
    title=settings.app_name,
    description="Card application portal and admin back office",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(drafts_router)
app.include_router(admin_router)
register_error_handlers(app)


@app.get("/health")
async def health():
    return {"status": "ok", "remote": settings.remote_api_url}
