"""
app/seed package marker.
"""

from app.seed.inventory import INVENTORY_METRICS, INVENTORY_SECTIONS

__all__ = ["INVENTORY_METRICS", "INVENTORY_SECTIONS"]
