# cashledger/db/get_db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from cashledger.core import config


def build_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(url, echo=False, future=True, pool_pre_ping=True)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables. Model modules are imported for their side effect."""
    from cashledger.db.base import Base
    import cashledger.models.directory  # noqa: F401
    import cashledger.models.cash_transaction  # noqa: F401
    import cashledger.models.opening_balance  # noqa: F401
    import cashledger.models.notification  # noqa: F401
    import cashledger.models.voucher  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
