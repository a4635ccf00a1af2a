from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import settings
from .base import Base

engine = create_async_engine(settings.POSTGRES_DSN, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

def import_models():
    # registers every table on Base.metadata
    from counsel.modules.services import models as _services  # noqa: F401
    from counsel.modules.slots import models as _slots  # noqa: F401
    from counsel.modules.appointments import models as _appointments  # noqa: F401
    from counsel.modules.payments import models as _payments  # noqa: F401
    from counsel.modules.reports import models as _reports  # noqa: F401
    from counsel.modules.events import outbox as _outbox  # noqa: F401

async def init_models():
    ## In dev-only "create_all" mode create tables; otherwise, migrations own the schema.
    if settings.DB_MANAGE == "create_all":
        import_models()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
