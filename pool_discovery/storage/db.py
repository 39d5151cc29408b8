from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import NullPool

from pool_discovery.config.settings import DATABASE_URL, DB_POOL_SIZE


def build_engine(url: str = DATABASE_URL, worker: bool = False):
    """Engine for ``url``.

    Celery workers fork, so they get ``NullPool`` connections that never
    outlive a task. The long-lived CLI / API engine keeps one pooled
    connection per scan thread plus headroom for readers.
    """
    options = {"pool_pre_ping": True}
    if make_url(url).get_backend_name() == "sqlite":
        # scan threads write through the same engine
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
    elif worker:
        options["poolclass"] = NullPool
    else:
        options.update(pool_size=DB_POOL_SIZE, max_overflow=DB_POOL_SIZE)
    return create_engine(url, **options)


def build_session_factory(bind):
    return scoped_session(sessionmaker(autoflush=False, expire_on_commit=False, bind=bind))


worker_engine = build_engine(worker=True)
WorkerSessionLocal = build_session_factory(worker_engine)

engine = build_engine()
SessionLocal = build_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
