#!/usr/bin/env python3
"""
Link Code Redeemer

Simulates the web frontend redeeming a device link code on behalf of a
logged-in user. Requires an identity token for that user (Firebase ID token,
or a jwt-backend token in development).

Usage:
    ID_TOKEN=<token> python3 scripts/simulate_link.py <code> [label]
"""
import sys
import os
import argparse
import json

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from dotenv import load_dotenv


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Redeem a device link code")
    parser.add_argument("code", help="Code shown by the device")
    parser.add_argument("label", nargs="?", default="Simulated device", help="Device label")
    parser.add_argument("--backend", help="Backend base URL (default: $BACKEND_URL or http://localhost:4001)")
    parser.add_argument("--token", help="Identity token (default: $ID_TOKEN)")
    args = parser.parse_args()

    token = args.token or os.getenv("ID_TOKEN")
    if not token:
        print("Error: an identity token is required (--token or ID_TOKEN).")
        print("Obtain it from the client after login.")
        return 2

    backend = (args.backend or os.getenv("BACKEND_URL") or "http://localhost:4001").rstrip("/")

    try:
        response = httpx.post(
            f"{backend}/api/link-device",
            json={"code": args.code, "label": args.label},
            headers={"Authorization": f"Bearer {token}"},
            timeout=10,
        )
    except httpx.HTTPError as e:
        print(f"Error: request failed: {e}")
        return 1

    print(f"HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)
    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
