"""
Celery Tasks
Background jobs that run outside the request path:
- Excel order report export
- Mirror reconciliation sweep
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

from canteen.celery_worker import celery_app
from canteen.core.config import get_settings
from canteen.services.excel_manager import ExcelManager
from canteen.services.mirror import BaseMirrorStore, SQLMirrorStore, get_mirror_store
from canteen.services.record_store import ORDERS, RecordStore, get_record_store

logger = logging.getLogger(__name__)


async def reconcile_orders(store: RecordStore, mirror: BaseMirrorStore) -> dict:
    """Upsert every durable order into the mirror, one record at a time."""
    table = get_settings().orders_table
    orders = await store.load(ORDERS, default=[])

    mirrored = 0
    failed_ids = []
    for record in orders:
        if await mirror.upsert(table, record):
            mirrored += 1
        else:
            failed_ids.append(record.get("id"))

    return {
        "total": len(orders),
        "mirrored": mirrored,
        "failed_ids": failed_ids,
    }


@celery_app.task(bind=True)
def export_orders_report(self, data_directory: Optional[str] = None) -> dict:
    """
    Export every order to the Excel report.

    Args:
        data_directory: Override of the configured data directory

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    logger.info(f"Task {task_id}: exporting order report")
    start_time = time.time()

    store = RecordStore(data_directory) if data_directory else get_record_store()
    orders = asyncio.run(store.load(ORDERS, default=[]))
    result = ExcelManager.export_orders(orders, data_directory)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: report completed in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: report failed - {result['message']}")

    return result


async def _sweep_mirror() -> dict:
    mirror = get_mirror_store()
    try:
        return await reconcile_orders(get_record_store(), mirror)
    finally:
        # Pooled connections belong to this event loop
        if isinstance(mirror, SQLMirrorStore):
            await mirror.dispose()


@celery_app.task(bind=True)
def reconcile_mirror(self) -> dict:
    """
    Repair mirror staleness left by best-effort writes.

    Failed records are reported, not retried; the next sweep picks them up.
    """
    task_id = self.request.id
    result = asyncio.run(_sweep_mirror())
    result['task_id'] = task_id

    logger.info(
        f"Task {task_id}: mirrored {result['mirrored']}/{result['total']} orders"
    )
    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }
