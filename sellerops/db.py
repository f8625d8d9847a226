# sellerops/db.py
# Engine / session factory and workspace lookup shared by the routers and the sync job

import uuid

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from sellerops.config import DATABASE_URL

# docker-compose: host "db"; uvicorn on the host: localhost:5432 (set DATABASE_URL in .env)
engine = create_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

DEFAULT_WORKSPACE = "default"


def db_ping() -> int:
    with engine.connect() as conn:
        return conn.execute(text("SELECT 1")).scalar_one()


def workspace_slug(value) -> str:
    return (value or "").strip().lower() or DEFAULT_WORKSPACE


def ensure_workspace(db: Session, slug: str = DEFAULT_WORKSPACE) -> uuid.UUID:
    """Id of the workspace called `slug`, created on first use (an upload may name a new one)."""
    from sellerops.models import Workspace

    s = workspace_slug(slug)
    ws = db.query(Workspace).filter(Workspace.slug == s).one_or_none()
    if ws is None:
        name = "Default Workspace" if s == DEFAULT_WORKSPACE else s.replace("_", " ").title()
        ws = Workspace(slug=s, name=name)
        db.add(ws)
        db.commit()
        db.refresh(ws)
    return ws.id


def resolve_workspace_id(db: Session, slug_or_id) -> uuid.UUID:
    """`workspace_slug` query param -> workspace id. Accepts a workspace UUID or a slug."""
    s = str(slug_or_id or "").strip()
    try:
        return uuid.UUID(s)
    except ValueError:
        return ensure_workspace(db, s)
