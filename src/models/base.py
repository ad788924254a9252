from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


def create_session_factory(database_url: str, **engine_options) -> sessionmaker[Session]:
    if not engine_options and not database_url.startswith("sqlite"):
        engine_options = {"pool_size": 20, "max_overflow": 5, "pool_timeout": 10, "pool_recycle": 1800}
    engine = create_engine(database_url, **engine_options)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
