from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import models  # noqa: F401  註冊所有資料表到 Base.metadata
from database import Base, SessionLocal, engine, settings
from core.auction_service import AuctionService
from api import admin, display, teams, websocket

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 在應用啟動時建立資料庫表
    Base.metadata.create_all(bind=engine)
    logger.info(f"Bug Auction API ready (database={settings.database_url})")
    yield


app = FastAPI(
    title="Bug Auction API",
    description="Backend API for live team bidding rounds",
    version="1.0.0",
    lifespan=lifespan
)

# Session registry、冷卻時間都在這個 instance 裡（單一 process 部署）
app.state.auction = AuctionService(settings)
app.state.session_factory = SessionLocal

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(teams.router)
app.include_router(admin.router)
app.include_router(display.router)
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Bug Auction API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=4000)
