"""
Codes-validation load-testing harness.

Provisions a pool of redeemable codes, splits it across virtual users and
drives the partner "codes validate" endpoint with Locust.
"""
from __future__ import annotations

__version__ = "1.0.0"
