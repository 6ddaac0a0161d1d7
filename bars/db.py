from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from bars.config import settings


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # sessions are handed across threadpool workers
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


Base = declarative_base()

engine = make_engine(settings.DB_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
