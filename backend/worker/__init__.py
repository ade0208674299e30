"""
Background worker: expired discount code scan and commission settlement.

Run with:
    python -m worker.main
"""
