#!/usr/bin/env python3
"""
Offline renderer: degrade an audio file from the command line.

Usage:
    python tools/render.py <subcommand> [options]

Subcommands:
    process <input>      Degrade a file and write compressed_<name>.wav
    levels               List quality levels and the settings they resolve to

Options (process):
    --quality <1-5>          Quality level (default: DEGRADE_DEFAULT_QUALITY or 3)
    --distortion-type <str>  digital | analog | bitcrush | radio | glitch
    --distortion-amount <f>  Waveshaper amount (0 = off)
    --bit-depth <int>        Quantize to 2^n levels
    --sample-rate <int>      Resample output to this rate
    --noise / --crackle      Enable additive noise / crackle
    --intensity <f>          Noise/crackle intensity 1-10
    --seed <int>             Fixed seed (default: random)
    --qc                     Run QC analysis on the output
    --debug                  Save <output>.resolved.json with settings + fingerprint
    --output <path>          Output path (default: next to input)
"""
import sys
import os
import json
import hashlib
import logging
import argparse
import mimetypes
import random
from datetime import datetime
from pathlib import Path

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from degrade.config import EngineConfig
from degrade.core.errors import DegradeError
from degrade.core.io import get_decoder
from degrade.params.quality import describe_levels, resolve_settings
from degrade.pipeline import process
from degrade.qc import analyze

BAR_WIDTH = 30


def default_output_path(input_path: Path) -> Path:
    """compressed_<stem>.wav next to the input."""
    return input_path.with_name(f"compressed_{input_path.stem}.wav")


def _print_progress(percent: float) -> None:
    filled = int(BAR_WIDTH * percent / 100.0)
    bar = "#" * filled + "." * (BAR_WIDTH - filled)
    sys.stderr.write(f"\rProcessing [{bar}] {percent:5.1f}%")
    if percent >= 100.0:
        sys.stderr.write("\n")
    sys.stderr.flush()


def _overrides_from_args(args) -> dict:
    overrides = {
        "quality": args.quality,
        "distortion_type": args.distortion_type,
        "distortion_amount": args.distortion_amount,
        "target_bit_depth": args.bit_depth,
        "target_sample_rate": args.sample_rate,
        "intensity": args.intensity,
    }
    if args.noise:
        overrides["noise_enabled"] = True
    if args.crackle:
        overrides["crackle_enabled"] = True
    return {k: v for k, v in overrides.items() if v is not None}


def cmd_process(args, config: EngineConfig) -> int:
    """Degrade one file."""
    input_path = Path(args.input)
    if not input_path.is_file():
        print(f"Input not found: {input_path}", file=sys.stderr)
        return 1
    output_path = Path(args.output) if args.output else default_output_path(input_path)

    data = input_path.read_bytes()
    content_type, _ = mimetypes.guess_type(str(input_path))
    overrides = _overrides_from_args(args)
    settings = resolve_settings(overrides, default_level=config.default_quality)
    # Always render with a concrete seed so the fingerprint can be reproduced
    seed = args.seed if args.seed is not None else random.randrange(2 ** 63)

    out_bytes = process(
        data,
        settings,
        None if args.quiet else _print_progress,
        content_type=content_type,
        seed=seed,
        config=config,
    )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(out_bytes)

    sha256 = hashlib.sha256(out_bytes).hexdigest()

    print(f"\n=== Render Complete ===")
    print(f"Input: {input_path} ({len(data) / 1024:.1f} KB)")
    print(f"Output: {output_path} ({len(out_bytes) / 1024:.1f} KB)")
    print(f"Quality: {settings.quality}, distortion: {settings.distortion_type.value} x {settings.distortion_amount}")
    print(f"Seed: {seed}")
    print(f"Fingerprint SHA256: {sha256[:16]}...")

    qc_result = None
    if args.qc:
        decoder = get_decoder()
        reference = decoder.decode(data, content_type=content_type)
        processed = decoder.decode(out_bytes, content_type="audio/wav")
        qc_result = analyze(processed, reference=reference)
        m = qc_result["metrics"]
        print(f"Peak: {m['peak_linear']:.4f}, RMS: {m['rms_linear']:.4f}")
        print(f"QC Status: {qc_result['status']}")
        if qc_result["failures"]:
            print("  FAILURES:")
            for f in qc_result["failures"]:
                print(f"    - {f}")
        if qc_result["warnings"]:
            print("  WARNINGS:")
            for w in qc_result["warnings"]:
                print(f"    - {w}")

    if args.debug:
        debug_info = {
            "timestamp": datetime.now().isoformat(),
            "input": str(input_path),
            "output": str(output_path),
            "seed": seed,
            "overrides": overrides,
            "resolved_settings": settings.to_dict(),
            "sha256": sha256,
            "qc_result": qc_result,
        }
        json_path = output_path.with_suffix(".resolved.json")
        with open(json_path, "w") as f:
            json.dump(debug_info, f, indent=2, default=str)
        print(f"Debug JSON: {json_path}")

    if qc_result is not None and qc_result["status"] == "FAIL":
        return 2
    return 0


def cmd_levels(args, config: EngineConfig) -> int:
    """Print each quality level with its resolved settings."""
    for level, info in describe_levels().items():
        print(info["description"])
        if args.verbose:
            for key, value in info["settings"].items():
                print(f"    {key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Degrade audio into a lo-fi WAV")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("process", help="Degrade an audio file")
    p.add_argument("input", help="Input audio file")
    p.add_argument("--output", "-o", help="Output WAV path")
    p.add_argument("--quality", "-q", type=int, choices=[1, 2, 3, 4, 5])
    p.add_argument("--distortion-type", choices=["digital", "analog", "bitcrush", "radio", "glitch"])
    p.add_argument("--distortion-amount", type=float)
    p.add_argument("--bit-depth", type=int)
    p.add_argument("--sample-rate", type=int)
    p.add_argument("--noise", action="store_true")
    p.add_argument("--crackle", action="store_true")
    p.add_argument("--intensity", type=float)
    p.add_argument("--seed", type=int)
    p.add_argument("--qc", action="store_true", help="Run QC analysis")
    p.add_argument("--debug", action="store_true", help="Save resolved.json")
    p.add_argument("--quiet", action="store_true", help="No progress bar")
    p.set_defaults(func=cmd_process)

    lv = sub.add_parser("levels", help="List quality levels")
    lv.add_argument("--verbose", "-v", action="store_true")
    lv.set_defaults(func=cmd_levels)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s - %(levelname)s - %(message)s")
    try:
        config = EngineConfig.from_env()
        return args.func(args, config)
    except DegradeError as e:
        print(f"\nError ({type(e).__name__}): {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
