import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teelottery.database import init_db
from teelottery.routes import algorithm_config, lottery, maintenance, member_profiles, restrictions

APP_NAME = "Tee-Time Lottery API"

app = FastAPI(title=APP_NAME)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Fixed-path /lottery/* routers go before the lottery router's /lottery/{lottery_date} routes
app.include_router(member_profiles.router, prefix="/api", tags=["member-profiles"])
app.include_router(algorithm_config.router, prefix="/api", tags=["algorithm-config"])
app.include_router(maintenance.router, prefix="/api", tags=["maintenance"])
app.include_router(restrictions.router, prefix="/api", tags=["restrictions"])
app.include_router(lottery.router, prefix="/api", tags=["lottery"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables


@app.get("/api/health")
def health_check():
    return {"app_name": APP_NAME, "status": "healthy"}
