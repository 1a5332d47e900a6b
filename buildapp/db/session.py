from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from buildapp.core.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

# One session per request or per scheduled job run.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
