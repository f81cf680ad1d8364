"""Fire many create-order calls from one client IP to exercise the rate limiter."""

import argparse
import asyncio

import httpx


async def main() -> None:
    """CLI entrypoint for burst submission smoke tests."""

    parser = argparse.ArgumentParser(description="Send many create-order calls from one client IP.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--client-ip", default="203.0.113.7")
    parser.add_argument("--ip-header", default="cf-connecting-ip")
    parser.add_argument("--count", type=int, default=8)
    args = parser.parse_args()

    statuses: dict[int, int] = {}
    async with httpx.AsyncClient(timeout=10.0, follow_redirects=False) as client:
        for _ in range(args.count):
            resp = await client.post(
                f"{args.base_url}/create-order",
                headers={args.ip_header: args.client_ip},
            )
            statuses[resp.status_code] = statuses.get(resp.status_code, 0) + 1
            print(resp.status_code, resp.headers.get("location") or resp.text)

    print("status_counts=", statuses)


if __name__ == "__main__":
    asyncio.run(main())
