"""Packet transport between the host and the modem.

Two bounded channels decouple the link from command processing. Frames
received from the host are parsed and queued for the command processor.
Responses queued by the command processor are handed, in order, to a
write function that puts them on the wire.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from .memory import BufferPoolError, TxPacket, TxPool
from .protocol import Packet, ProtocolError

logger = logging.getLogger(__name__)

TX_CHANNEL_CAPACITY = 8
RX_CHANNEL_CAPACITY = 1
TRANSFER_BUFFER_SIZE = 256
"""Largest single transfer in either direction."""

WriteFn = Callable[[bytes], Union[None, Awaitable[None]]]


class SpiError(Exception):
    """A transport failure; the underlying error, if any, is the cause."""


class Transport:
    """Queues received requests and outgoing responses."""

    def __init__(self, pool: Optional[TxPool] = None) -> None:
        self._pool = pool if pool is not None else TxPool()
        self._tx: asyncio.Queue[TxPacket] = asyncio.Queue(TX_CHANNEL_CAPACITY)
        self._rx: asyncio.Queue[Packet] = asyncio.Queue(RX_CHANNEL_CAPACITY)

    @property
    def pool(self) -> TxPool:
        """The pool outgoing packets are allocated from."""
        return self._pool

    def handle_received(self, data: bytes) -> Optional[Packet]:
        """Parse one transfer from the host and queue it for processing.

        Returns the queued packet, or None if the transfer was empty,
        malformed, or dropped because the receive channel is full.
        """
        data = bytes(data)[:TRANSFER_BUFFER_SIZE]
        if not data:
            logger.debug("RX: empty transfer received")
            return None
        try:
            packet = Packet.parse_request(data)
        except ProtocolError as err:
            logger.warning("RX: invalid packet received: %r", err)
            return None
        try:
            self._rx.put_nowait(packet)
        except asyncio.QueueFull:
            logger.warning("RX: channel full, dropping packet")
            return None
        logger.debug("RX: valid packet received, code %#06x", packet.code)
        return packet

    def _to_tx_packet(self, packet: Union[TxPacket, Packet, bytes]) -> TxPacket:
        if isinstance(packet, TxPacket):
            return packet
        try:
            if isinstance(packet, Packet):
                return TxPacket(packet.serialize(), self._pool)
            return TxPacket(bytes(packet), self._pool)
        except (BufferPoolError, ProtocolError) as err:
            raise SpiError(f"cannot queue response: {err}") from err

    async def send_response(self, packet: Union[TxPacket, Packet, bytes]) -> None:
        """Queue a response, waiting while the transmit channel is full.

        A Packet is serialized as a response frame; raw bytes are sent as is.
        Both take a buffer from the pool.
        """
        await self._tx.put(self._to_tx_packet(packet))

    def tx_has_space(self) -> bool:
        return not self._tx.full()

    def rx_has_data(self) -> bool:
        return not self._rx.empty()

    def try_receive_command(self) -> Optional[Packet]:
        """Take the next received request without waiting."""
        try:
            return self._rx.get_nowait()
        except asyncio.QueueEmpty:
            return None

    async def receive_command(self) -> Packet:
        """Wait for the next received request."""
        return await self._rx.get()

    async def transmit_next(self, write: WriteFn) -> bytes:
        """Wait for one queued packet and pass its bytes to ``write``.

        The packet's buffer goes back to the pool whatever the outcome.
        Returns the bytes written; raises SpiError if ``write`` fails.
        """
        tx_packet = await self._tx.get()
        data = bytes(tx_packet)[:TRANSFER_BUFFER_SIZE]
        try:
            result = write(data)
            if inspect.isawaitable(result):
                await result
        except Exception as err:
            raise SpiError(f"TX transfer failed: {err}") from err
        finally:
            tx_packet.release()
        logger.debug("TX: sent %d bytes", len(data))
        return data

    async def run_tx(self, write: WriteFn) -> None:
        """Transmit queued packets forever, logging failed transfers."""
        while True:
            try:
                await self.transmit_next(write)
            except SpiError as err:
                logger.error("TX: %s", err)