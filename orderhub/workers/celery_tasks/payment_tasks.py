"""
Payment tasks - Celery background jobs for payment reconciliation
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from orderhub.core.celery_app import celery_app
from orderhub.core.config import settings

logger = logging.getLogger(__name__)

# Create async engine for background tasks
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=3600,
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


async def sweep_stale_payments(session_maker=async_session_maker, gateway=None, older_than_minutes=None):
    from orderhub.services.payment.payment_service import PaymentReconciler

    async with session_maker() as db:
        reconciler = PaymentReconciler(db, gateway)
        return await reconciler.reconcile_stale_payments(older_than_minutes)


@celery_app.task(bind=True)
def reconcile_stale_payments(self, older_than_minutes=None):
    """
    Re-verify payments still pending after STALE_PAYMENT_MINUTES.
    Covers webhooks that never arrived and clients that never came back to verify.
    """
    summary = run_async_task(sweep_stale_payments(older_than_minutes=older_than_minutes))
    logger.info(f"Stale payment reconciliation: {summary}")
    return summary
