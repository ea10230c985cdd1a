"""
Chunked File Transfer

Moves one binary object at a time over a message-based data channel
whose messages are size limited.

Wire framing (must match on both ends):
    "__META__" + JSON metadata    text frame, opens a transfer
    raw bytes                     one frame per chunk, at most chunk_size
    "__END__"                     text frame, closes the transfer

The channel is trusted to deliver every frame once and in order. Chunks
carry no index, and a sender that fails mid-way sends nothing further.
"""

import asyncio
import io
import json
import logging
import math
import mimetypes
import os
import time
from dataclasses import asdict, dataclass
from typing import BinaryIO, Callable, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 16 * 1024
META_PREFIX = "__META__"
END_MARKER = "__END__"
DEFAULT_MIME_TYPE = "application/octet-stream"

# Pause sending while the channel has more than this many bytes queued
MAX_BUFFERED_AMOUNT = 1024 * 1024
DRAIN_INTERVAL = 0.01


@dataclass
class TransferMetadata:
    """
    Describes the object announced by a metadata frame.

    Attributes:
        name: File name
        mime: MIME type
        size: Declared size in bytes
        chunks: Declared number of chunk frames
        timestamp: Creation time in milliseconds since the epoch
    """

    name: str
    mime: str
    size: int
    chunks: int
    timestamp: int
    type: str = "file"

    def to_frame(self) -> str:
        return META_PREFIX + json.dumps(asdict(self))

    @classmethod
    def from_frame(cls, frame: str) -> "TransferMetadata":
        """
        Raises:
            ValueError: If the frame does not hold valid metadata
        """
        if not frame.startswith(META_PREFIX):
            raise ValueError("Not a metadata frame")
        data = json.loads(frame[len(META_PREFIX):])
        if not isinstance(data, dict):
            raise ValueError("Metadata must be an object")
        name = data.get("name") or "file"
        mime = data.get("mime") or DEFAULT_MIME_TYPE
        if not isinstance(name, str) or not isinstance(mime, str):
            raise ValueError("Metadata name and mime must be strings")
        try:
            return cls(
                name=name,
                mime=mime,
                size=int(data.get("size") or 0),
                chunks=int(data.get("chunks") or 0),
                timestamp=int(data.get("timestamp") or 0),
            )
        except TypeError as e:
            raise ValueError(f"Malformed metadata: {e}") from e


@dataclass
class ReceivedFile:
    """A reassembled object handed to the receiving application."""

    name: str
    mime: str
    timestamp: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, directory: str) -> str:
        """
        Write the payload into directory under its own base name.

        Returns:
            Path of the written file
        """
        name = os.path.basename(self.name) or "file"
        path = os.path.join(directory, name)
        with open(path, "wb") as f:
            f.write(self.data)
        logger.info(f"Saved {self.name} ({self.size} bytes) to {path}")
        return path


def chunk_count(size: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    return math.ceil(size / chunk_size)


class FileSender:
    """
    Sends objects over a data channel, one chunk in flight at a time.

    Attributes:
        channel: Anything with send(str | bytes); aiortc's RTCDataChannel
        chunk_size: Maximum bytes per chunk frame
    """

    def __init__(
        self,
        channel,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_progress: Optional[Callable[[float], None]] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.channel = channel
        self.chunk_size = chunk_size
        self._on_progress = on_progress

    async def send_file(self, path: str, mime: Optional[str] = None) -> bool:
        """Send a file from disk; the MIME type is guessed when omitted."""
        mime = mime or mimetypes.guess_type(path)[0] or DEFAULT_MIME_TYPE
        try:
            size = os.path.getsize(path)
            stream = open(path, "rb")
        except OSError as e:
            logger.error(f"File read error: {e}")
            return False

        with stream:
            return await self.send_stream(stream, os.path.basename(path), mime, size)

    async def send_bytes(
        self, data: bytes, name: str, mime: str = DEFAULT_MIME_TYPE
    ) -> bool:
        return await self.send_stream(io.BytesIO(data), name, mime, len(data))

    async def send_stream(
        self, stream: BinaryIO, name: str, mime: str, size: int
    ) -> bool:
        """
        Send size bytes read from stream.

        Each chunk is read only after the previous one was handed to the
        channel. A failed or short read stops the loop and returns False;
        the receiver is not told.

        Returns:
            True once the end marker went out
        """
        total = chunk_count(size, self.chunk_size)
        metadata = TransferMetadata(
            name=name,
            mime=mime,
            size=size,
            chunks=total,
            timestamp=int(time.time() * 1000),
        )

        logger.info(f"Starting file transfer: {name} ({size} bytes, {total} chunks)")
        self.channel.send(metadata.to_frame())

        loop = asyncio.get_running_loop()
        for index in range(total):
            try:
                chunk = await loop.run_in_executor(None, stream.read, self.chunk_size)
            except OSError as e:
                logger.error(f"File read error at chunk {index}: {e}")
                return False
            if not chunk:
                logger.error(f"File ended early at chunk {index} of {total}")
                return False

            await self._drain()
            self.channel.send(chunk)
            if self._on_progress:
                self._on_progress((index + 1) / total)

        self.channel.send(END_MARKER)
        logger.info(f"File transfer complete: {name}")
        return True

    async def _drain(self):
        while getattr(self.channel, "bufferedAmount", 0) > MAX_BUFFERED_AMOUNT:
            await asyncio.sleep(DRAIN_INTERVAL)


class FileReceiver:
    """
    Reassembles objects from metadata, chunk and end frames.

    Attributes:
        metadata: Metadata of the open transfer, None between transfers
        chunks: Chunks received for the open transfer, in receipt order
    """

    def __init__(
        self,
        on_file: Callable[[ReceivedFile], None],
        on_progress: Optional[Callable[[float], None]] = None,
    ):
        self.metadata: Optional[TransferMetadata] = None
        self.chunks: List[bytes] = []
        self._on_file = on_file
        self._on_progress = on_progress

    def attach(self, channel) -> "FileReceiver":
        """Receive every message arriving on channel."""
        channel.on("message", self.handle_message)
        return self

    @property
    def in_progress(self) -> bool:
        return self.metadata is not None

    def handle_message(self, data: Union[str, bytes, bytearray, memoryview]):
        if isinstance(data, str):
            self._handle_text(data)
        elif self.metadata is not None:
            self._handle_chunk(bytes(data))
        else:
            logger.debug(f"Dropping {len(data)} byte chunk outside a transfer")

    def _handle_text(self, frame: str):
        if frame.startswith(META_PREFIX):
            try:
                metadata = TransferMetadata.from_frame(frame)
            except ValueError as e:
                logger.warning(f"Ignoring malformed metadata frame: {e}")
                return
            if self.metadata is not None:
                logger.warning(
                    f"Discarding incomplete transfer of {self.metadata.name}"
                )
            logger.info(f"Receiving {metadata.name} ({metadata.size} bytes)")
            self.metadata = metadata
            self.chunks = []
        elif frame == END_MARKER:
            if self.metadata is None:
                logger.debug("Ignoring end marker outside a transfer")
                return
            self._assemble()
        else:
            logger.debug(f"Ignoring unknown text frame: {frame[:32]}")

    def _handle_chunk(self, chunk: bytes):
        self.chunks.append(chunk)
        if self._on_progress and self.metadata.chunks:
            progress = len(self.chunks) / self.metadata.chunks
            logger.debug(f"File transfer progress: {progress * 100:.2f}%")
            self._on_progress(progress)

    def _assemble(self):
        metadata = self.metadata
        data = b"".join(self.chunks)
        if len(data) != metadata.size:
            logger.warning(
                f"{metadata.name}: received {len(data)} bytes, "
                f"declared {metadata.size}"
            )

        self.metadata = None
        self.chunks = []

        logger.info(f"File assembled: {metadata.name}")
        self._on_file(
            ReceivedFile(
                name=metadata.name,
                mime=metadata.mime,
                timestamp=metadata.timestamp,
                data=data,
            )
        )
