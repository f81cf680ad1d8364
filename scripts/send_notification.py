"""Sign a payment notification body and POST it to the gateway's /notify.

Useful for checking a deployed gateway's shared secret without the processor.
"""

import argparse
import json
from pathlib import Path

import httpx

from upaygate.common.signing import sign, strip_signature


def main() -> None:
    """Parse CLI args, sign the payload and deliver it once."""

    parser = argparse.ArgumentParser(description="Send a signed notification to /notify.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--secret", required=True, help="Shared UPay payment key")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    parser.add_argument("--tamper", action="store_true", help="Corrupt the signature before sending")
    args = parser.parse_args()

    if bool(args.json_inline) == bool(args.json_file):
        raise SystemExit("Provide exactly one of --json or --file")

    if args.json_inline:
        payload = json.loads(args.json_inline)
    else:
        payload = json.loads(Path(args.json_file).read_text())

    fields, _ = strip_signature(payload)
    digest = sign(fields, args.secret)
    if args.tamper:
        digest = digest[:-1] + ("0" if digest[-1] != "0" else "1")
    fields["sign"] = digest

    resp = httpx.post(f"{args.base_url}/notify", json=fields, timeout=10.0)
    print(resp.status_code, resp.text)


if __name__ == "__main__":
    main()
