#!/usr/bin/env python3
"""
Transcription Smoke Test

Synthesises a short sine-wave WAV and posts it to the proxy's transcription
endpoint, then prints the status and whatever text came back.

Usage:
    python scripts/smoke_transcribe.py [--url URL] [--model MODEL] [--seconds 1]
"""

import argparse
import io
import json
import sys
import wave

import httpx
import numpy as np

from runeforge.common.gateway import extract_text


def create_sine_wav(seconds: float = 1.0, freq: float = 440.0, sample_rate: int = 16000,
                    amplitude: float = 0.3) -> bytes:
    """Mono 16-bit PCM WAV of a pure tone."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    samples = np.clip(np.sin(2 * np.pi * freq * t) * amplitude * 32767, -32768, 32767).astype("<i2")
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples.tobytes())
    return buffer.getvalue()


def main():
    parser = argparse.ArgumentParser(description="Post a synthetic WAV to the transcription proxy")
    parser.add_argument("--url", default="http://localhost:3001/api/gemini/audio/transcriptions")
    parser.add_argument("--model", default="gemini-2.5-flash")
    parser.add_argument("--seconds", type=float, default=1.0)
    args = parser.parse_args()

    audio = create_sine_wav(seconds=args.seconds)
    try:
        response = httpx.post(
            args.url,
            files={"file": ("smoke.wav", audio, "audio/wav")},
            data={"model": args.model},
            timeout=60.0,
        )
    except httpx.HTTPError as e:
        print(f"[Smoke] ERROR: request failed: {e}")
        sys.exit(1)

    try:
        data = response.json()
    except ValueError:
        data = {"raw": response.text}

    text = extract_text(data) or str(data.get("text") or "")
    if not text and isinstance(data.get("segments"), list):
        text = " ".join(str(s.get("text", "")) for s in data["segments"])

    print(f"Status: {response.status_code}")
    print(f"Transcription: {(text or json.dumps(data, ensure_ascii=False))[:200]}")


if __name__ == "__main__":
    main()
