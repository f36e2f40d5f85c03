"""
Excel Order Report Manager

Writes the order collection to an Excel workbook for canteen staff.
The workbook is rebuilt from the durable snapshot on every export and
guarded by a file lock so overlapping exports do not interleave.

Version: 1.0.0
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from canteen.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Thread-safe Excel report writer."""

    ORDER_COLUMNS = [
        "order_code",
        "order_id",
        "created_at",
        "owner_id",
        "merchant_id",
        "items",
        "total_amount",
        "payment_method",
        "fulfillment_mode",
        "scheduled_time",
        "pickup_otp",
        "status",
        "updated_at",
        "exported_at",
    ]

    @classmethod
    def _report_paths(cls, data_directory: Optional[str] = None) -> tuple[Path, Path]:
        settings = get_settings()
        data_dir = Path(data_directory or settings.data_directory)
        report = data_dir / settings.report_filename
        return report, data_dir / f"{settings.report_filename}.lock"

    @classmethod
    def _ensure_data_dir(cls, report_file: Path) -> None:
        """Create data directory if needed."""
        if not report_file.parent.exists():
            report_file.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {report_file.parent}")

    @classmethod
    def _to_row(cls, record: dict[str, Any], export_time: str) -> dict[str, Any]:
        return {
            "order_code": record.get("order_code"),
            "order_id": record.get("id"),
            "created_at": record.get("created_at"),
            "owner_id": record.get("owner_id"),
            "merchant_id": record.get("merchant_id"),
            "items": json.dumps(record.get("line_items", [])),
            "total_amount": record.get("total_amount"),
            "payment_method": record.get("payment_method"),
            "fulfillment_mode": record.get("fulfillment_mode"),
            "scheduled_time": record.get("scheduled_time"),
            "pickup_otp": record.get("pickup_otp"),
            "status": record.get("status"),
            "updated_at": record.get("updated_at"),
            "exported_at": export_time,
        }

    @classmethod
    def export_orders(
        cls,
        orders: list[dict[str, Any]],
        data_directory: Optional[str] = None,
    ) -> dict[str, Any]:
        """Write every order to the report workbook with file locking."""
        report_file, lock_file = cls._report_paths(data_directory)
        cls._ensure_data_dir(report_file)
        lock_timeout = get_settings().report_lock_timeout

        result = {
            "success": False,
            "message": "",
            "order_count": len(orders),
            "exported_at": None,
        }

        try:
            lock = FileLock(str(lock_file), timeout=lock_timeout)

            with lock:
                logger.debug("Lock acquired for order report")

                export_time = datetime.now().isoformat()
                df = pd.DataFrame(
                    [cls._to_row(record, export_time) for record in orders],
                    columns=cls.ORDER_COLUMNS,
                )
                df.to_excel(str(report_file), index=False, engine="openpyxl")

                logger.info(f"{len(orders)} orders exported to {report_file}")

                result["success"] = True
                result["message"] = f"{len(orders)} orders exported"
                result["exported_at"] = export_time

            logger.debug("Lock released for order report")

        except Timeout:
            result["message"] = f"Lock timeout ({lock_timeout}s)"
            logger.error("Lock timeout for order report")

        except Exception as e:
            result["message"] = str(e)
            logger.exception("Error exporting order report")

        return result

    @classmethod
    def read_report(cls, data_directory: Optional[str] = None) -> list[dict[str, Any]]:
        """Read the report rows back."""
        report_file, _ = cls._report_paths(data_directory)

        if not report_file.exists():
            return []

        try:
            df = pd.read_excel(report_file, engine="openpyxl", dtype={"pickup_otp": str})
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading order report: {e}")
            return []

    @classmethod
    def clear_report(cls, data_directory: Optional[str] = None) -> bool:
        """Delete the report workbook and its lock."""
        try:
            for f in cls._report_paths(data_directory):
                if f.exists():
                    f.unlink()
            logger.info("Order report cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing report: {e}")
            return False
