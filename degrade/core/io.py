"""
Container adapters at the edges of the pipeline.

Decoding goes through soundfile (libsndfile): WAV, FLAC, OGG/Vorbis, AIFF and,
with libsndfile >= 1.1, MP3. Encoding writes the canonical 44-byte PCM16 WAV
layout by hand so the header is bit-exact regardless of the libsndfile build.
"""
from typing import Dict, Optional
import io
import logging
import struct

import numpy as np
import soundfile as sf
import torch

from degrade.core.errors import DecodeError, InvalidInput, InvalidParameter
from degrade.core.types import AudioBuffer

logger = logging.getLogger("degrade")

PCM16_SCALE = 32767.0

# (offset, signature, container); RIFF/FORM also need a form type at offset 8
_SIGNATURES = (
    (0, b"fLaC", "flac"),
    (0, b"OggS", "ogg"),
    (0, b"ID3", "mp3"),
)
_FORM_TYPES = {
    (b"RIFF", b"WAVE"): "wav",
    (b"RF64", b"WAVE"): "wav",
    (b"FORM", b"AIFF"): "aiff",
    (b"FORM", b"AIFC"): "aiff",
}


def sniff_container(data: bytes) -> Optional[str]:
    """Best-effort container guess from magic bytes; None when unrecognised."""
    if len(data) >= 12:
        form = _FORM_TYPES.get((bytes(data[0:4]), bytes(data[8:12])))
        if form:
            return form
    for offset, signature, name in _SIGNATURES:
        if bytes(data[offset:offset + len(signature)]) == signature:
            return name
    # Bare MPEG audio frame sync
    if len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xE0) == 0xE0:
        return "mp3"
    return None


def validate_input(data, content_type: Optional[str] = None, max_bytes: Optional[int] = None) -> bytes:
    """
    Reject inputs that are missing, empty, declared as non-audio, or too large.
    Returns the data as bytes.
    """
    if data is None:
        raise InvalidInput("No input provided")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidInput(f"Input must be bytes, got {type(data).__name__}")
    data = bytes(data)
    if len(data) == 0:
        raise InvalidInput("Input is empty")
    if content_type is not None and not content_type.strip().lower().startswith("audio/"):
        raise InvalidInput(f"Declared type {content_type!r} is not an audio type")
    if max_bytes is not None and len(data) > max_bytes:
        raise InvalidInput(f"Input is {len(data)} bytes, limit is {max_bytes}")
    return data


class AudioDecoder:
    """Encoded bytes -> AudioBuffer."""
    name = "base"

    def decode(self, data: bytes, content_type: Optional[str] = None) -> AudioBuffer:
        raise NotImplementedError


class AudioEncoder:
    """AudioBuffer -> encoded bytes for one container."""
    container = "base"
    media_type = "application/octet-stream"
    extension = ""

    def encode(self, buffer: AudioBuffer) -> bytes:
        raise NotImplementedError


class SoundFileDecoder(AudioDecoder):
    name = "soundfile"

    def decode(self, data: bytes, content_type: Optional[str] = None) -> AudioBuffer:
        container = sniff_container(data)
        try:
            bio = io.BytesIO(data)
            info = sf.info(bio)
            bio.seek(0)
            if info.subtype == "PCM_16":
                # Mirror the encoder's 32767 scale so PCM16 round-trips symmetrically
                raw, sample_rate = sf.read(bio, dtype="int16", always_2d=True)
                samples = raw.astype(np.float32) / PCM16_SCALE
            else:
                samples, sample_rate = sf.read(bio, dtype="float32", always_2d=True)
        except (RuntimeError, ValueError) as e:
            # Unrecognised bytes, or a container this libsndfile build lacks (e.g. MP3 before 1.1)
            if container is None or container.upper() not in sf.available_formats():
                raise DecodeError(
                    f"Unsupported audio format ({content_type or 'unknown type'}): {e}",
                    reason="unsupported",
                    container=container,
                ) from e
            raise DecodeError(f"Corrupt {container} data: {e}", reason="corrupt", container=container) from e

        if samples.ndim != 2 or samples.shape[1] < 1:
            raise DecodeError("Decoded audio has no channels", reason="corrupt", container=container)

        samples = np.nan_to_num(samples, nan=0.0, posinf=1.0, neginf=-1.0)
        np.clip(samples, -1.0, 1.0, out=samples)
        # soundfile gives (frames, channels); buffers are (channels, frames)
        tensor = torch.from_numpy(np.ascontiguousarray(samples.T))
        logger.info(
            "Decoded %s: %d ch, %d frames @ %d Hz (%s)",
            container or info.format, tensor.shape[0], tensor.shape[1], sample_rate, info.subtype,
        )
        return AudioBuffer(samples=tensor, sample_rate=int(sample_rate))


class WavEncoder(AudioEncoder):
    """Canonical RIFF/WAVE, PCM 16-bit little-endian, interleaved frames."""
    container = "wav"
    media_type = "audio/wav"
    extension = ".wav"

    HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
    HEADER_SIZE = 44

    def encode(self, buffer: AudioBuffer) -> bytes:
        channels = buffer.channel_count
        sample_rate = buffer.sample_rate
        data = buffer.samples.detach().cpu().numpy().astype(np.float64)
        data = np.clip(np.nan_to_num(data, nan=0.0), -1.0, 1.0)
        # Round half up: floor(x * 32767 + 0.5)
        pcm = np.floor(data * PCM16_SCALE + 0.5).astype("<i2")
        payload = pcm.T.tobytes()  # frame-major, channel-minor
        data_length = len(payload)

        header = self.HEADER.pack(
            b"RIFF",
            36 + data_length,
            b"WAVE",
            b"fmt ",
            16,
            1,
            channels,
            sample_rate,
            sample_rate * channels * 2,
            channels * 2,
            16,
            b"data",
            data_length,
        )
        return header + payload


DECODERS: Dict[str, AudioDecoder] = {
    "soundfile": SoundFileDecoder(),
}

ENCODERS: Dict[str, AudioEncoder] = {
    "wav": WavEncoder(),
}


def get_decoder(name: str = "soundfile") -> AudioDecoder:
    try:
        return DECODERS[name]
    except KeyError:
        raise InvalidParameter(f"Unknown decoder {name!r} (available: {', '.join(DECODERS)})")


def get_encoder(container: str = "wav") -> AudioEncoder:
    try:
        return ENCODERS[container.lower()]
    except (KeyError, AttributeError):
        raise InvalidParameter(f"Unsupported output container {container!r} (available: {', '.join(ENCODERS)})")
