"""
Order Store Verification Script

Verifies data integrity of the durable orders collection.
Run from project root: python scripts/verify.py

Version: 1.0.0
"""

import json
import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

ORDERS_FILE = os.path.join('data', 'orders.json')


def verify_orders():
    """Verify orders.json integrity."""

    print("=" * 60)
    print("ORDER STORE VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {ORDERS_FILE}")
    print("=" * 60)

    if not os.path.exists(ORDERS_FILE):
        print("\nOrders file not found!")
        print("   Start the server and place an order first.")
        return False

    try:
        with open(ORDERS_FILE, encoding='utf-8') as fh:
            df = pd.DataFrame(json.load(fh))
        print("\nFile loaded successfully!")
    except (OSError, ValueError) as e:
        print(f"\nCould not read orders file: {e}")
        return False

    print("\nSTATISTICS:")
    print(f"   Total Orders: {len(df)}")

    if df.empty:
        print("\nNo orders yet")
        return True

    required = ['id', 'order_code', 'status', 'total_amount', 'created_at']
    missing = [col for col in required if col not in df.columns]
    if missing:
        print(f"\nMissing Fields: {missing}")
        return False
    print("\nAll required fields present")

    ok = True

    duplicate_ids = df['id'].duplicated().sum()
    if duplicate_ids > 0:
        print(f"\n{duplicate_ids} duplicate internal ids found!")
        ok = False
    else:
        print("No duplicate internal ids")

    # Order codes restart every day
    df['day'] = pd.to_datetime(df['created_at'], utc=True, format='ISO8601').dt.date
    duplicate_codes = df.duplicated(subset=['day', 'order_code']).sum()
    if duplicate_codes > 0:
        print(f"\n{duplicate_codes} duplicate order codes within a day!")
        ok = False
    else:
        print("No duplicate order codes within a day")

    print("\nSTATUS BREAKDOWN:")
    print(df['status'].value_counts().to_string())

    delivered = df[df['status'] == 'delivered']
    print("\nREVENUE (delivered):")
    print(f"   Total: {delivered['total_amount'].sum():.2f}")

    print("\nRECENT ORDERS:")
    print("-" * 60)
    print(df[['order_code', 'status', 'total_amount', 'created_at']].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FAILED")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_orders() else 1)
