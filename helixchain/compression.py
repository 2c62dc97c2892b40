"""Raw DEFLATE compression with a configurable level."""

import zlib

_RAW_DEFLATE = -zlib.MAX_WBITS
_MAX_LEVEL = 9


class HelixCompression:
    """Compresses and decompresses raw DEFLATE streams (no zlib header)."""

    def __init__(self, level: int = 6) -> None:
        self.level = min(level, _MAX_LEVEL)

    def set_level(self, level: int) -> None:
        """Set the compression level, capped at 9."""
        self.level = min(level, _MAX_LEVEL)

    def compress(self, data: bytes) -> bytes:
        """Compress ``data`` into a finished raw DEFLATE stream."""
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, _RAW_DEFLATE)
        return compressor.compress(bytes(data)) + compressor.flush()

    def decompress(self, data: bytes) -> bytes:
        """Decompress a raw DEFLATE stream; raise ValueError if it is corrupt."""
        decompressor = zlib.decompressobj(_RAW_DEFLATE)
        try:
            output = decompressor.decompress(bytes(data)) + decompressor.flush()
        except zlib.error as exc:
            raise ValueError(f"invalid compressed data: {exc}") from exc
        if not decompressor.eof:
            raise ValueError("invalid compressed data: stream is truncated")
        return output


def dlc_compress(data: bytes) -> bytes:
    """Compress ``data`` at the highest level."""
    compressor = HelixCompression()
    compressor.set_level(9)
    return compressor.compress(data)