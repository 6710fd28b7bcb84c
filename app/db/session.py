"""
Database engine and session factory
"""
from atams.db.session import create_engine_from_settings, get_db_factory
from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings, settings


def build_engine(config: Settings):
    # SQLite connections are shared with the sweeper thread
    if config.DATABASE_URL.startswith("sqlite"):
        return create_engine(
            config.DATABASE_URL,
            connect_args={"check_same_thread": False},
            echo=config.DEBUG,
        )
    return create_engine_from_settings(config)


engine = build_engine(settings)

SessionLocal = sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)

get_db = get_db_factory(SessionLocal)

# BIGINT primary keys only autoincrement on SQLite as INTEGER
BigIntegerType = BigInteger().with_variant(Integer, "sqlite")
