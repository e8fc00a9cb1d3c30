"""Readable plaintext stream handed out by FileEngine.retrieve()."""

import io
import logging
from typing import BinaryIO, Iterator, Optional

logger = logging.getLogger(__name__)


class PlaintextStream(io.RawIOBase):
    """
    File-like view over a lazy sequence of plaintext pieces.

    Closing the stream closes the piece generator and the underlying
    file handle, so abandoning a download early releases the file.
    Iterating yields the pieces as produced (not lines).
    """

    def __init__(self, pieces: Iterator[bytes], source: BinaryIO, first_piece: Optional[bytes] = None):
        """
        Initialize stream.

        Args:
            pieces: Iterator producing plaintext pieces
            source: Underlying file handle, closed together with the stream
            first_piece: Piece already pulled from the iterator, served first
        """
        super().__init__()
        self._pieces = pieces
        self._source = source
        self._buffer = first_piece or b""
        self._exhausted = False

    def readable(self) -> bool:
        return True

    def _next_piece(self) -> bytes:
        while not self._exhausted:
            try:
                piece = next(self._pieces)
            except StopIteration:
                self._exhausted = True
                break
            if piece:
                return piece
        return b""

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")

        if not self._buffer:
            self._buffer = self._next_piece()
            if not self._buffer:
                return 0

        size = min(len(buffer), len(self._buffer))
        buffer[:size] = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return size

    def readall(self) -> bytes:
        parts = [self._buffer]
        self._buffer = b""
        while True:
            piece = self._next_piece()
            if not piece:
                break
            parts.append(piece)
        return b"".join(parts)

    def __iter__(self) -> Iterator[bytes]:
        if self._buffer:
            piece, self._buffer = self._buffer, b""
            yield piece
        while True:
            piece = self._next_piece()
            if not piece:
                return
            yield piece

    def close(self) -> None:
        if self.closed:
            return
        try:
            close_pieces = getattr(self._pieces, "close", None)
            if close_pieces is not None:
                close_pieces()
        finally:
            self._source.close()
            super().close()
            logger.debug("Plaintext stream closed")
