"""KitCache Serializer - Value Serialization and Compression Framing.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import gzip
import json
import logging
import pickle
import zlib
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from kitcache_core.errors import SerializationError

logger = logging.getLogger(__name__)


class CompressionType(Enum):
    """Compression types."""

    NONE = auto()
    GZIP = auto()
    ZLIB = auto()


# Payload markers identifying compressed data
COMPRESSION_MARKERS: Dict[CompressionType, bytes] = {
    CompressionType.GZIP: b"__GZIP__",
    CompressionType.ZLIB: b"__ZLIB__",
}


def compression_of(data: bytes) -> CompressionType:
    """Detect the compression marker of a payload.

    Args:
        data: Stored payload

    Returns:
        Compression type, NONE for unmarked data
    """
    for compression, marker in COMPRESSION_MARKERS.items():
        if data.startswith(marker):
            return compression
    return CompressionType.NONE


def is_compressed(data: bytes) -> bool:
    """Check if a payload carries a compression marker."""
    return compression_of(data) is not CompressionType.NONE


def compress_bytes(data: bytes, compression: CompressionType, level: int = 6) -> bytes:
    """Compress bytes with a codec, without any marker."""
    if compression is CompressionType.GZIP:
        return gzip.compress(data, compresslevel=level)
    if compression is CompressionType.ZLIB:
        return zlib.compress(data, level)
    return data


def decompress_bytes(data: bytes, compression: CompressionType) -> bytes:
    """Decompress unmarked bytes.

    Raises:
        SerializationError: If the data is corrupt
    """
    try:
        if compression is CompressionType.GZIP:
            return gzip.decompress(data)
        if compression is CompressionType.ZLIB:
            return zlib.decompress(data)
        return data
    except (OSError, EOFError, zlib.error) as e:
        raise SerializationError(f"Corrupt {compression.name.lower()} payload: {e}") from e


def compress_payload(
    data: bytes,
    compression: CompressionType = CompressionType.GZIP,
    level: int = 6,
) -> bytes:
    """Compress bytes and prepend the codec marker.

    Args:
        data: Raw bytes
        compression: Codec to use
        level: Compression level

    Returns:
        Marked, compressed payload (or data unchanged for NONE)
    """
    if compression is CompressionType.NONE:
        return data
    return COMPRESSION_MARKERS[compression] + compress_bytes(data, compression, level)


def decompress_payload(data: bytes) -> bytes:
    """Strip the codec marker and decompress.

    Args:
        data: Stored payload

    Returns:
        Decompressed bytes (unmarked data is returned unchanged)

    Raises:
        SerializationError: If the payload is corrupt
    """
    compression = compression_of(data)
    if compression is CompressionType.NONE:
        return data
    return decompress_bytes(data[len(COMPRESSION_MARKERS[compression]):], compression)


class Serializer(ABC):
    """Abstract serializer for cache values.

    Implementations handle different serialization formats. Failures are
    reported as SerializationError regardless of format.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """Serialize value to bytes.

        Raises:
            SerializationError: If value cannot be encoded
        """

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Deserialize bytes to value.

        Raises:
            SerializationError: If data cannot be decoded
        """

    def dumps(
        self,
        value: Any,
        compression: CompressionType = CompressionType.GZIP,
        threshold: int = 1024,
        level: int = 6,
    ) -> bytes:
        """Serialize with compression above a size threshold.

        Compressed output is kept only when it is actually smaller.

        Args:
            value: Value to serialize
            compression: Compression type
            threshold: Size threshold in bytes
            level: Compression level

        Returns:
            Serialized (possibly compressed) bytes
        """
        data = self.serialize(value)

        if compression is not CompressionType.NONE and len(data) > threshold:
            compressed = compress_payload(data, compression, level)
            if len(compressed) < len(data):
                return compressed

        return data

    def loads(self, data: bytes) -> Any:
        """Deserialize, decompressing marked payloads first."""
        return self.deserialize(decompress_payload(data))


class JSONSerializer(Serializer):
    """JSON serializer.

    Good for human-readable data and interoperability.
    Limited to JSON-compatible types.
    """

    @property
    def format_name(self) -> str:
        return "json"

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"JSON encode failed: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            if isinstance(data, (bytes, bytearray)):
                data = data.decode("utf-8")
            return json.loads(data)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"JSON decode failed: {e}") from e


class PickleSerializer(Serializer):
    """Pickle serializer.

    Supports any picklable Python object.
    Not safe for untrusted data.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        """Initialize pickle serializer.

        Args:
            protocol: Pickle protocol version
        """
        self.protocol = protocol

    @property
    def format_name(self) -> str:
        return "pickle"

    def serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=self.protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise SerializationError(f"Pickle encode failed: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, TypeError, ValueError, AttributeError) as e:
            raise SerializationError(f"Pickle decode failed: {e}") from e


class MsgPackSerializer(Serializer):
    """MessagePack serializer.

    Compact binary format, faster than JSON.
    Requires msgpack package.
    """

    @property
    def format_name(self) -> str:
        return "msgpack"

    def serialize(self, value: Any) -> bytes:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack package not installed. Run: pip install msgpack")

        try:
            return msgpack.packb(value, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as e:
            raise SerializationError(f"MessagePack encode failed: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            import msgpack
        except ImportError:
            raise ImportError("msgpack package not installed. Run: pip install msgpack")

        try:
            return msgpack.unpackb(data, raw=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"MessagePack decode failed: {e}") from e


class RawSerializer(Serializer):
    """Text passthrough.

    Stores ``str(value)``; reads always come back as text.
    """

    @property
    def format_name(self) -> str:
        return "raw"

    def serialize(self, value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")

    def deserialize(self, data: bytes) -> Any:
        try:
            return data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
        except UnicodeDecodeError as e:
            raise SerializationError(f"Raw decode failed: {e}") from e


class SerializerRegistry:
    """Registry of serializers."""

    def __init__(self):
        self._serializers: Dict[str, Serializer] = {}
        self._default: str = "json"

        self.register(JSONSerializer())
        self.register(PickleSerializer())
        self.register(MsgPackSerializer())
        self.register(RawSerializer())

    def register(self, serializer: Serializer) -> None:
        """Register a serializer under its format name."""
        self._serializers[serializer.format_name] = serializer
        logger.debug(f"Registered serializer {serializer.format_name!r}")

    def get(self, format_name: str) -> Serializer:
        """Get serializer by format.

        Raises:
            KeyError: If format not found
        """
        if format_name not in self._serializers:
            raise KeyError(f"Unknown serializer format: {format_name}")
        return self._serializers[format_name]

    def get_default(self) -> Serializer:
        """Get default serializer."""
        return self._serializers[self._default]

    def set_default(self, format_name: str) -> None:
        """Set default serializer.

        Raises:
            KeyError: If format not found
        """
        if format_name not in self._serializers:
            raise KeyError(f"Unknown serializer format: {format_name}")
        self._default = format_name

    def remove(self, format_name: str) -> bool:
        """Remove a serializer.

        Raises:
            ValueError: If format is the default
        """
        if format_name == self._default:
            raise ValueError("Cannot remove default serializer")
        return self._serializers.pop(format_name, None) is not None

    def list_formats(self) -> List[str]:
        """List available formats."""
        return list(self._serializers.keys())


# Global registry
_registry = SerializerRegistry()


def get_serializer(format_name: Optional[str] = None) -> Serializer:
    """Get serializer by format.

    Args:
        format_name: Format name or None for default

    Returns:
        Serializer instance
    """
    if format_name is None:
        return _registry.get_default()
    return _registry.get(format_name)


__all__ = [
    "Serializer",
    "CompressionType",
    "COMPRESSION_MARKERS",
    "JSONSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
    "RawSerializer",
    "SerializerRegistry",
    "compress_bytes",
    "decompress_bytes",
    "compress_payload",
    "decompress_payload",
    "compression_of",
    "is_compressed",
    "get_serializer",
]
