import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, select

from .api import billings, dashboard, public, residents, rooms, settings, users, visitors
from .auth import get_password_hash
from .db import engine, init_db
from .errors import register_exception_handlers
from .models import User

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Resort Resident Management")

# comma separated origins; empty means same-origin only
cors_origins = [o.strip() for o in os.getenv("CORS_ALLOWED", "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for module in (users, dashboard, residents, rooms, billings, visitors, public, settings):
    app.include_router(module.router)


def ensure_admin_user() -> None:
    """Create the bootstrap admin from ADMIN_USER / ADMIN_PASSWORD if missing."""
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        return
    username = os.getenv("ADMIN_USER", "admin")
    with Session(engine) as session:
        if session.exec(select(User).where(User.username == username)).first():
            return
        session.add(User(username=username, password_hash=get_password_hash(password), role="admin"))
        session.commit()
    logger.info("created bootstrap admin %s", username)


@app.on_event("startup")
def on_startup():
    init_db()
    ensure_admin_user()


@app.get("/api/health")
def health():
    return {"status": "ok"}
