from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from crisp.api.routes import candidate, sessions, health
from crisp.api.errors import register_exception_handlers

# ✅ Import Core Services
from crisp.core import config
from crisp.core.logging_config import setup_logging
from crisp.db.init_db import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)
    init_db()
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Crisp Interviews", lifespan=lifespan)

# ✅ CORS - only the candidate frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type"],
)

register_exception_handlers(app)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(candidate.router)
app.include_router(sessions.router)
app.include_router(health.router)


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "Crisp interviews API running"}
