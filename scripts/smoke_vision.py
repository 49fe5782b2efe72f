#!/usr/bin/env python3
"""
Vision Smoke Test

Posts an example image URL to the proxy's vision endpoint and prints the
status and the returned description.

Usage:
    python scripts/smoke_vision.py [--url URL] [--image IMAGE_URL]
"""

import argparse
import json
import sys

import httpx

from runeforge.common.gateway import extract_text

EXAMPLE_IMAGE = (
    "https://upload.wikimedia.org/wikipedia/commons/thumb/a/a8/"
    "Tour_Eiffel_Wikimedia_Commons.jpg/640px-Tour_Eiffel_Wikimedia_Commons.jpg"
)


def main():
    parser = argparse.ArgumentParser(description="Post an image URL to the vision proxy")
    parser.add_argument("--url", default="http://localhost:3001/api/gemini/vision")
    parser.add_argument("--image", default=EXAMPLE_IMAGE)
    parser.add_argument("--model", default="gemini-2.5-flash")
    args = parser.parse_args()

    body = {
        "model": args.model,
        "messages": [
            {"role": "system", "content": "You are an image understanding assistant. Reply with a short description."},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Describe the main content of this image."},
                    {"type": "image_url", "image_url": {"url": args.image}},
                ],
            },
        ],
    }
    try:
        response = httpx.post(args.url, json=body, timeout=60.0)
    except httpx.HTTPError as e:
        print(f"[Smoke] ERROR: request failed: {e}")
        sys.exit(1)

    try:
        data = response.json()
    except ValueError:
        data = {"raw": response.text}

    print(f"Status: {response.status_code}")
    print(f"Vision: {(extract_text(data) or json.dumps(data, ensure_ascii=False))[:200]}")


if __name__ == "__main__":
    main()
