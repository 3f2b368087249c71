# core/codec.py
"""
Serialization codec for trained classifier payloads.
One job: turn a payload object graph into compressed bytes and back.

Serialization (pickle) and compression (gzip) are layered as two stream
transforms: pickle writes straight into the compressing stream, so either
layer can be swapped without touching the other.

Decoding unpickles, so only decode bytes that came from the classifier table.
"""

import gzip
import io
import pickle
from typing import BinaryIO

from core.errors import DecodingError, EncodingError
from core.payload import TrainedPayload

DEFAULT_COMPRESSION_LEVEL = 6


class PayloadCodec:
    """Pickle + gzip codec for TrainedPayload objects"""

    def __init__(self, compression_level: int = DEFAULT_COMPRESSION_LEVEL):
        """
        Initialize codec

        Args:
            compression_level: gzip compression level, 0 (none) to 9 (best)
        """
        if not 0 <= compression_level <= 9:
            raise ValueError(f"compression_level must be between 0 and 9, got {compression_level}")
        self.compression_level = compression_level

    def encode(self, payload: TrainedPayload) -> bytes:
        """
        Serialize and compress a payload

        Args:
            payload: Payload to persist

        Returns:
            Compressed byte stream
        """
        buffer = io.BytesIO()
        try:
            with self._open_writer(buffer) as stream:
                pickle.dump(payload, stream, protocol=pickle.HIGHEST_PROTOCOL)
        except Exception as e:
            raise EncodingError(f"Could not serialize payload: {e}") from e

        return buffer.getvalue()

    def decode(self, data: bytes) -> TrainedPayload:
        """
        Decompress and deserialize a payload

        Args:
            data: Bytes previously produced by encode()

        Returns:
            Decoded payload
        """
        if not data:
            raise DecodingError("Could not deserialize payload: no data")

        try:
            with self._open_reader(io.BytesIO(bytes(data))) as stream:
                payload = pickle.load(stream)
        except Exception as e:
            raise DecodingError(f"Could not deserialize payload: {e}") from e

        if not isinstance(payload, TrainedPayload):
            raise DecodingError(
                f"Could not deserialize payload: expected TrainedPayload, got {type(payload).__name__}"
            )

        return payload

    # Compression layer
    def _open_writer(self, raw: BinaryIO) -> BinaryIO:
        # mtime=0 keeps the header free of wall-clock noise
        return gzip.GzipFile(fileobj=raw, mode='wb',
                             compresslevel=self.compression_level, mtime=0)

    def _open_reader(self, raw: BinaryIO) -> BinaryIO:
        return gzip.GzipFile(fileobj=raw, mode='rb')
