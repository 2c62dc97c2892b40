import zlib

import pytest

from helixchain.compression import HelixCompression, dlc_compress

SAMPLE = b"helix chain block data " * 50


def test_default_level():
    assert HelixCompression().level == 6


def test_level_is_capped():
    compressor = HelixCompression()
    compressor.set_level(42)
    assert compressor.level == 9


def test_round_trip():
    compressor = HelixCompression()
    assert compressor.decompress(compressor.compress(SAMPLE)) == SAMPLE


def test_round_trip_empty():
    compressor = HelixCompression()
    assert compressor.decompress(compressor.compress(b"")) == b""


@pytest.mark.parametrize("level", [0, 1, 5, 9])
def test_round_trip_all_levels(level):
    compressor = HelixCompression()
    compressor.set_level(level)
    assert compressor.decompress(compressor.compress(SAMPLE)) == SAMPLE


def test_output_is_raw_deflate():
    compressed = HelixCompression().compress(SAMPLE)
    assert zlib.decompress(compressed, -zlib.MAX_WBITS) == SAMPLE


def test_repetitive_data_shrinks():
    assert len(HelixCompression().compress(SAMPLE)) < len(SAMPLE)


def test_dlc_compress_round_trip():
    compressed = dlc_compress(SAMPLE)
    assert HelixCompression().decompress(compressed) == SAMPLE


def test_corrupt_data_raises():
    with pytest.raises(ValueError):
        HelixCompression().decompress(b"\xff\xff\xff\xff")


def test_truncated_stream_raises():
    compressed = HelixCompression().compress(SAMPLE)
    with pytest.raises(ValueError):
        HelixCompression().decompress(compressed[: len(compressed) // 2])