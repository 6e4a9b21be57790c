import asyncio
import argparse
import logging
import sys
from dotenv import load_dotenv

from client import RateLimitedClient
from config import QUIZ_URL, WORKERS, RATE_PER_SECOND, RATE_BURST, REQUEST_TIMEOUT_SECONDS
from limiter import RateLimiter
from metrics import print_summary, summarize
from pool import WorkerPool


async def main(workers: int, url: str, rate: float, burst: int) -> dict:
    print(f"Starting Quiz Runner", flush=True)
    print(f"Target: {url}", flush=True)
    print(f"Number of parallel workers: {workers}", flush=True)
    print(f"Rate limit: {rate}/s, burst {burst}", flush=True)
    print("-" * 50, flush=True)

    limiter = RateLimiter(rate, burst)
    async with RateLimitedClient(limiter, url, timeout=REQUEST_TIMEOUT_SECONDS) as client:
        result = await WorkerPool(client, workers=workers).run()

    summary = summarize(result.outcomes, result.winner, result.elapsed)
    print_summary(summary)
    return summary


def cli(argv=None) -> None:
    # Force unbuffered output
    sys.stdout.reconfigure(line_buffering=True)
    sys.stderr.reconfigure(line_buffering=True)
    load_dotenv()

    parser = argparse.ArgumentParser(description="Quiz Runner")
    parser.add_argument("-n", type=int, default=WORKERS, help="number of parallel workers")
    parser.add_argument("--url", default=QUIZ_URL, help="server url")
    parser.add_argument("--rate", type=float, default=RATE_PER_SECOND, help="requests per second, all workers combined")
    parser.add_argument("--burst", type=int, default=RATE_BURST, help="request burst size")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every request and field choice")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    summary = asyncio.run(main(args.n, args.url, args.rate, args.burst))
    sys.exit(0 if summary["winner"] is not None else 1)


if __name__ == "__main__":
    cli()
