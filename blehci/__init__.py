"""Bluetooth Low Energy HCI building blocks: packets, transports and L2CAP signaling."""

__version__ = "0.1.0"
__all__ = ["l2cap", "packets", "transport"]