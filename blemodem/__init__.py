"""Framed host-to-modem wire protocol, transmit buffer pool and asyncio transport queues."""

__version__ = "0.1.0"
__all__ = ["memory", "protocol", "transport"]