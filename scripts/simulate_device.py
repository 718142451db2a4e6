#!/usr/bin/env python3
"""
Device Simulator

Acts like a tracking device against a running backend:

    keygen          create an Ed25519 keypair on disk
    request-code    ask for a link code (show it to the owner)
    send-location   post a signed position fix
    pull            fetch unread notifications with a signed GET

Usage:
    python3 scripts/simulate_device.py keygen --keys ./keys
    python3 scripts/simulate_device.py request-code --keys ./keys --device-id simdev_0001
    python3 scripts/simulate_device.py send-location --keys ./keys --device-id simdev_0001 --lat 47.37 --lon 8.54
    python3 scripts/simulate_device.py pull --keys ./keys --device-id simdev_0001

The backend URL is read from BACKEND_URL (default http://localhost:4001).
"""
import sys
import os
import argparse
import json
import logging
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from dotenv import load_dotenv

from webtracker.core.signing import generate_keypair, load_private_key, public_key_to_base64
from webtracker.core.signing.client import sign_request
from webtracker.core.signing.keys import save_keypair

logger = logging.getLogger("simulate_device")

KEY_NAME = "device"


def _backend_url(args) -> str:
    return (args.backend or os.getenv("BACKEND_URL") or "http://localhost:4001").rstrip("/")


def _print_response(response: httpx.Response):
    print(f"HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def cmd_keygen(args) -> int:
    private_key, public_key = generate_keypair()
    private_path, public_path = save_keypair(private_key, Path(args.keys), name=KEY_NAME)
    print(f"Private key: {private_path}")
    print(f"Public key:  {public_path}")
    print(f"pubkey:      {public_key_to_base64(public_key)}")
    return 0


def cmd_request_code(args) -> int:
    private_key = load_private_key(Path(args.keys) / f"{KEY_NAME}.key")
    payload = {
        "device_id": args.device_id,
        "pubkey": public_key_to_base64(private_key.public_key()),
    }
    response = httpx.post(f"{_backend_url(args)}/api/generate-device-code", json=payload, timeout=10)
    print(f"deviceId: {args.device_id}")
    _print_response(response)
    return 0 if response.is_success else 1


def cmd_send_location(args) -> int:
    private_key = load_private_key(Path(args.keys) / f"{KEY_NAME}.key")
    fix = {
        "ts_ms": int(time.time() * 1000),
        "lat": args.lat,
        "lon": args.lon,
        "accuracy_m": args.accuracy,
        "provider": "simulator",
    }
    # Sign exactly the bytes that go on the wire
    body = json.dumps(fix, separators=(",", ":")).encode("utf-8")
    path = "/api/location"
    headers = sign_request(private_key, args.device_id, "POST", path, body)
    headers["Content-Type"] = "application/json"

    logger.debug(f"Signed {path} with nonce {headers['X-Nonce']}")
    response = httpx.post(f"{_backend_url(args)}{path}", content=body, headers=headers, timeout=10)
    _print_response(response)
    return 0 if response.is_success else 1


def cmd_pull(args) -> int:
    private_key = load_private_key(Path(args.keys) / f"{KEY_NAME}.key")
    path = "/api/notifications"
    headers = sign_request(private_key, args.device_id, "GET", path)
    response = httpx.get(f"{_backend_url(args)}{path}", headers=headers, timeout=10)
    _print_response(response)
    return 0 if response.is_success else 1


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Simulate a tracking device against the webtracker backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--backend", help="Backend base URL (default: $BACKEND_URL or http://localhost:4001)")
    parser.add_argument("--keys", default="./keys", help="Directory holding device.key / device.pub")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("keygen", help="Generate a device keypair")

    code_parser = subparsers.add_parser("request-code", help="Request a link code")
    code_parser.add_argument("--device-id", default=f"simdev_{int(time.time())}")

    location_parser = subparsers.add_parser("send-location", help="Send a signed location fix")
    location_parser.add_argument("--device-id", required=True)
    location_parser.add_argument("--lat", type=float, required=True)
    location_parser.add_argument("--lon", type=float, required=True)
    location_parser.add_argument("--accuracy", type=float, default=10.0)

    pull_parser = subparsers.add_parser("pull", help="Pull unread notifications")
    pull_parser.add_argument("--device-id", required=True)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    commands = {
        "keygen": cmd_keygen,
        "request-code": cmd_request_code,
        "send-location": cmd_send_location,
        "pull": cmd_pull,
    }
    try:
        return commands[args.command](args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Key error: {e}")
        return 2
    except httpx.HTTPError as e:
        logger.error(f"Request failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
