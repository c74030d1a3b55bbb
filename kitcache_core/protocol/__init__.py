"""Protocol module - Serialization and compression framing."""

from kitcache_core.protocol.serializer import (
    Serializer,
    CompressionType,
    JSONSerializer,
    PickleSerializer,
    MsgPackSerializer,
    RawSerializer,
    SerializerRegistry,
    compress_bytes,
    decompress_bytes,
    compress_payload,
    decompress_payload,
    is_compressed,
    get_serializer,
)

__all__ = [
    "Serializer",
    "CompressionType",
    "JSONSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
    "RawSerializer",
    "SerializerRegistry",
    "compress_bytes",
    "decompress_bytes",
    "compress_payload",
    "decompress_payload",
    "is_compressed",
    "get_serializer",
]
