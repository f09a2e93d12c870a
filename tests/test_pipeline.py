"""
End-to-end process(): bytes in, WAV bytes out, error kinds at each stage.
Run from project root: python -m pytest tests/test_pipeline.py -v
"""
import sys
import os
import asyncio
import hashlib
import math
import struct

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
import torch
from unittest.mock import patch

from degrade.config import EngineConfig
from degrade.core.errors import DecodeError, InvalidInput, InvalidParameter, ProcessingFailure
from degrade.core.io import WavEncoder, get_decoder
from degrade.core.types import AudioBuffer
from degrade.dsp.chain import SignalChain
from degrade.pipeline import process, process_async, process_buffer

SR = 22050


def _input_wav(channels=2, seconds=0.5) -> bytes:
    t = torch.arange(int(seconds * SR), dtype=torch.float32) / SR
    tone = 0.7 * torch.sin(2 * math.pi * 330.0 * t)
    return WavEncoder().encode(AudioBuffer(samples=tone.repeat(channels, 1), sample_rate=SR))


def test_level_three_keeps_shape():
    data = _input_wav()
    out = process(data, 3, seed=1)
    decoded = get_decoder().decode(out)
    assert out[:4] == b"RIFF" and out[8:12] == b"WAVE"
    assert decoded.sample_rate == SR
    assert decoded.channel_count == 2
    assert decoded.frame_count == int(0.5 * SR)


def test_level_five_header_carries_new_rate():
    out = process(_input_wav(channels=1), 5, seed=1)
    channels, sample_rate = struct.unpack_from("<HI", out, 22)
    assert channels == 1
    assert sample_rate == 8000
    data_length = struct.unpack_from("<I", out, 40)[0]
    assert len(out) == 44 + data_length


def test_fingerprint_is_stable_without_randomness():
    data = _input_wav()
    a = hashlib.sha256(process(data, 4)).hexdigest()
    b = hashlib.sha256(process(data, 4)).hexdigest()
    assert a == b


def test_overrides_reach_the_chain():
    out = process(_input_wav(), {"quality": 1, "sample_rate": 11025}, seed=0)
    assert struct.unpack_from("<I", out, 24)[0] == 11025


def test_default_level_from_config():
    out = process(_input_wav(), None, config=EngineConfig(default_quality=5))
    assert struct.unpack_from("<I", out, 24)[0] == 8000


class TestErrors:
    def test_empty_input(self):
        with pytest.raises(InvalidInput):
            process(b"", 3)

    def test_missing_input(self):
        with pytest.raises(InvalidInput):
            process(None, 3)

    def test_non_audio_type(self):
        with pytest.raises(InvalidInput):
            process(_input_wav(), 3, content_type="text/plain")

    def test_too_large(self):
        with pytest.raises(InvalidInput):
            process(_input_wav(), 3, config=EngineConfig(max_input_bytes=100))

    def test_garbage_is_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            process(b"definitely not audio " * 50, 3, content_type="audio/wav")
        assert exc_info.value.reason == "unsupported"

    def test_bad_level(self):
        with pytest.raises(InvalidParameter):
            process(_input_wav(), 9)

    def test_bad_container(self):
        with pytest.raises(InvalidParameter):
            process(_input_wav(), 3, container="ogg")

    def test_chain_failure_is_wrapped(self):
        with patch.object(SignalChain, "_back", side_effect=RuntimeError("boom")):
            with pytest.raises(ProcessingFailure) as exc_info:
                process(_input_wav(), 3)
        assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_async_matches_sync():
    data = _input_wav(seconds=0.2)
    request = {"quality": 2, "noise": True, "crackle": True}
    seen = []
    async_out = asyncio.run(process_async(data, request, seen.append, seed=11))
    sync_out = process(data, request, seed=11)
    assert async_out == sync_out
    assert seen[-1] == 100.0


def test_async_yields_between_batches():
    """Another task gets to run while a long render is in progress."""
    data = _input_wav(seconds=0.5)
    ticks = []

    async def ticker():
        for _ in range(5):
            ticks.append(1)
            await asyncio.sleep(0)

    async def main():
        task = asyncio.create_task(ticker())
        out = await process_async(data, 3, config=EngineConfig(batch_frames=512))
        ran_during_render = len(ticks)
        await task
        return out, ran_during_render

    out, ran_during_render = asyncio.run(main())
    assert out[:4] == b"RIFF"
    assert ran_during_render == 5


def test_process_buffer_returns_settings():
    buffer = AudioBuffer(samples=torch.zeros(1, 1000), sample_rate=SR)
    out, settings = process_buffer(buffer, {"quality": 4, "gain": 0.5})
    assert settings.quality == 4
    assert settings.output_gain == 0.5
    assert out.sample_rate == 11025
