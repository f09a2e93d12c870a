"""
Container adapters: input validation, soundfile decoding, bit-exact WAV encoding.
Run from project root: python -m pytest tests/test_wav_io.py -v
"""
import sys
import os
import io
import struct

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np
import pytest
import soundfile as sf
import torch
from unittest.mock import patch
from degrade.core.errors import DecodeError, InvalidInput, InvalidParameter
from degrade.core.io import (
    WavEncoder,
    get_decoder,
    get_encoder,
    sniff_container,
    validate_input,
)
from degrade.core.types import AudioBuffer


def _wav(samples, sample_rate=22050) -> bytes:
    return WavEncoder().encode(AudioBuffer(samples=torch.as_tensor(samples, dtype=torch.float32), sample_rate=sample_rate))


class TestWavEncoder:
    def test_header_fields(self):
        out = _wav(torch.zeros(2, 3), sample_rate=8000)
        header = struct.unpack("<4sI4s4sIHHIIHH4sI", out[:44])
        assert header == (
            b"RIFF", 36 + 12, b"WAVE",
            b"fmt ", 16, 1, 2, 8000, 8000 * 2 * 2, 4, 16,
            b"data", 12,
        )

    def test_total_length(self):
        out = _wav(torch.zeros(3, 100))
        assert len(out) == 44 + 100 * 3 * 2

    def test_samples_interleaved_and_rounded(self):
        samples = [[0.0, 1.0, -1.0], [0.5, -0.5, 2.0]]
        out = _wav(samples)
        pcm = struct.unpack("<6h", out[44:])
        # frame-major; 0.5 * 32767 = 16383.5 rounds up, -16383.5 rounds up too
        assert pcm == (0, 16384, 32767, -16383, -32767, 32767)

    def test_zero_frames_is_header_only(self):
        out = _wav(torch.zeros(1, 0))
        assert len(out) == 44
        assert struct.unpack_from("<I", out, 40)[0] == 0

    def test_registry(self):
        assert isinstance(get_encoder("wav"), WavEncoder)
        assert get_encoder("WAV").media_type == "audio/wav"
        with pytest.raises(InvalidParameter):
            get_encoder("mp3")


class TestDecoder:
    def test_wav_round_trip_within_one_step(self):
        torch.manual_seed(0)
        original = torch.rand(2, 1000) * 2.0 - 1.0
        decoded = get_decoder().decode(_wav(original, 22050), content_type="audio/wav")
        assert decoded.sample_rate == 22050
        assert decoded.channel_count == 2
        assert decoded.frame_count == 1000
        assert float((decoded.samples - original).abs().max()) <= 1.0 / 32767 + 1e-7

    def test_full_scale_survives_round_trip(self):
        decoded = get_decoder().decode(_wav([[1.0, -1.0, 0.0]]))
        assert decoded.samples[0].tolist() == [1.0, -1.0, 0.0]

    def test_flac_decodes(self):
        t = np.arange(4410) / 44100.0
        data = (0.5 * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)
        bio = io.BytesIO()
        sf.write(bio, data, 44100, format="FLAC")
        decoded = get_decoder().decode(bio.getvalue(), content_type="audio/flac")
        assert decoded.channel_count == 1
        assert decoded.frame_count == 4410
        assert decoded.sample_rate == 44100
        np.testing.assert_allclose(decoded.samples[0].numpy(), data, atol=1e-3)

    def test_float_wav_decodes(self):
        data = np.array([[0.25, -0.25], [0.5, -0.5]], dtype=np.float32)  # (frames, channels)
        bio = io.BytesIO()
        sf.write(bio, data, 16000, format="WAV", subtype="FLOAT")
        decoded = get_decoder().decode(bio.getvalue())
        torch.testing.assert_close(decoded.samples, torch.from_numpy(data.T.copy()))

    def test_unrecognised_bytes_are_unsupported(self):
        with pytest.raises(DecodeError) as exc_info:
            get_decoder().decode(b"this is not audio at all " * 20)
        assert exc_info.value.reason == "unsupported"
        assert exc_info.value.container is None

    def test_truncated_wav_is_corrupt(self):
        data = _wav(torch.zeros(1, 100))[:24]
        with pytest.raises(DecodeError) as exc_info:
            get_decoder().decode(data)
        assert exc_info.value.reason == "corrupt"
        assert exc_info.value.container == "wav"

    def test_container_missing_from_libsndfile_build_is_unsupported(self):
        data = _wav(torch.zeros(1, 100))[:24]
        with patch.object(sf, "available_formats", return_value={"FLAC": "FLAC (Free Lossless Audio Codec)"}):
            with pytest.raises(DecodeError) as exc_info:
                get_decoder().decode(data)
        assert exc_info.value.reason == "unsupported"
        assert exc_info.value.container == "wav"


class TestValidateInput:
    def test_accepts_audio_bytes(self):
        assert validate_input(bytearray(b"RIFF"), content_type="audio/wav") == b"RIFF"

    def test_missing_and_empty(self):
        with pytest.raises(InvalidInput):
            validate_input(None)
        with pytest.raises(InvalidInput):
            validate_input(b"")

    def test_not_bytes(self):
        with pytest.raises(InvalidInput):
            validate_input("RIFF....WAVE")

    def test_non_audio_content_type(self):
        with pytest.raises(InvalidInput):
            validate_input(b"abc", content_type="text/plain")

    def test_content_type_optional(self):
        assert validate_input(b"abc") == b"abc"

    def test_size_limit(self):
        with pytest.raises(InvalidInput):
            validate_input(b"x" * 11, max_bytes=10)


def test_sniff_container():
    assert sniff_container(_wav(torch.zeros(1, 4))) == "wav"
    assert sniff_container(b"fLaC\x00\x00\x00\x22") == "flac"
    assert sniff_container(b"OggS\x00\x02") == "ogg"
    assert sniff_container(b"ID3\x04\x00") == "mp3"
    assert sniff_container(b"\xff\xfb\x90\x00") == "mp3"
    assert sniff_container(b"FORM\x00\x00\x00\x00AIFF") == "aiff"
    assert sniff_container(b"hello world") is None
