"""ShipFlow shipment economics and courier integration service."""

__version__ = "1.0.0"
