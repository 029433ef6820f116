import asyncio
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from guardforce.core.celery_app import celery_app
from guardforce.core.config import settings

logger = logging.getLogger(__name__)

# Separate engine for worker processes; each task runs on its own event loop
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    poolclass=NullPool,
)

async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def run_async_task(coro):
    """Helper function to run async coroutines in Celery tasks"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.error(f"Error in async task: {e}")
        raise
    finally:
        loop.close()


@celery_app.task
def mark_overdue_invoices(as_of: Optional[str] = None):
    """Daily task: flag sent/viewed/partial invoices past their due date"""
    async def _mark_overdue():
        async with async_session_maker() as db:
            # Import inside function to avoid circular imports
            from guardforce.services.billing.invoice_service import InvoiceService

            as_of_date = datetime.strptime(as_of, "%Y-%m-%d").date() if as_of else date.today()
            count = await InvoiceService(db).mark_overdue_invoices(as_of=as_of_date)
            return f"Marked {count} invoices overdue as of {as_of_date}"

    return run_async_task(_mark_overdue())
