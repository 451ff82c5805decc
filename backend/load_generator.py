"""
Load Generator for Zule Mesh Store
Drives checkout -> payment request -> verify polling against a running service
"""
import asyncio
import aiohttp
import time
import random
from dataclasses import dataclass
from typing import List
import statistics


@dataclass
class LoadTestResult:
    """Results from a load test run"""
    total_flows: int
    checkouts_created: int
    payment_requests_created: int
    verify_polls: int
    verified: int
    failures: int
    avg_latency_ms: float
    p95_latency_ms: float
    p99_latency_ms: float

    def __str__(self):
        return f"""
╔════════════════════════════════════════════╗
║         LOAD TEST RESULTS                  ║
╠════════════════════════════════════════════╣
║ Total Flows:           {self.total_flows:>8}             ║
║ Checkouts Created:     {self.checkouts_created:>8}             ║
║ Payment Requests:      {self.payment_requests_created:>8}             ║
║ Verify Polls:          {self.verify_polls:>8}             ║
║ Verified:              {self.verified:>8}             ║
║ Failures:              {self.failures:>8}             ║
╠════════════════════════════════════════════╣
║ Avg Flow Latency:      {self.avg_latency_ms:>7.1f}ms           ║
║ P95 Flow Latency:      {self.p95_latency_ms:>7.1f}ms           ║
║ P99 Flow Latency:      {self.p99_latency_ms:>7.1f}ms           ║
╚════════════════════════════════════════════╝
"""


def checkout_payload(flow_id: int) -> dict:
    price = round(random.uniform(0.001, 0.05), 3)
    quantity = random.randint(1, 3)
    return {
        "fullName": f"Test Buyer {flow_id}",
        "email": f"buyer{flow_id}@example.com",
        "address": f"{flow_id} Market Street",
        "city": "Los Angeles",
        "state": "CA",
        "postalCode": "90001",
        "country": "US",
        "total": round(price * quantity, 3),
        "items": [{"name": "Shirt", "size": "M", "color": "Black", "quantity": quantity, "price": price}]
    }


async def run_flow(
    session: aiohttp.ClientSession,
    base_url: str,
    flow_id: int,
    polls: int,
    use_qr: bool
) -> dict:
    """Run one buyer flow and track result"""
    start_time = time.time()
    result = {
        "checkout": False,
        "payment_request": False,
        "polls": 0,
        "verified": False,
        "error": None,
        "latency_ms": 0.0
    }
    timeout = aiohttp.ClientTimeout(total=10)

    try:
        payload = checkout_payload(flow_id)
        async with session.post(f"{base_url}/api/checkout", json=payload, timeout=timeout) as response:
            body = await response.json()
            if response.status != 200:
                raise RuntimeError(body.get("error", f"checkout HTTP {response.status}"))
            result["checkout"] = True

        path = "/api/payment/qr" if use_qr else "/api/payment/request"
        async with session.post(f"{base_url}{path}", json={"total": payload["total"]}, timeout=timeout) as response:
            body = await response.json()
            if response.status != 200:
                raise RuntimeError(body.get("error", f"payment request HTTP {response.status}"))
            reference = body["ref"]
            result["payment_request"] = True

        for _ in range(polls):
            async with session.get(
                f"{base_url}/api/payment/verify",
                params={"reference": reference},
                timeout=timeout
            ) as response:
                body = await response.json()
                result["polls"] += 1
                if response.status != 200:
                    raise RuntimeError(body.get("error", f"verify HTTP {response.status}"))
                if body.get("status") == "verified":
                    result["verified"] = True
                    break
            await asyncio.sleep(0.2)
    except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError, KeyError) as e:
        result["error"] = str(e)

    result["latency_ms"] = (time.time() - start_time) * 1000
    return result


async def run_load_test(
    base_url: str = "http://localhost:5000",
    total_flows: int = 50,
    concurrency: int = 10,
    polls: int = 3,
    use_qr: bool = False
) -> LoadTestResult:
    """
    Run a load test against the store.

    Args:
        base_url: Base URL of the store service
        total_flows: Number of buyer flows to run
        concurrency: Number of flows run at once
        polls: Verify polls per flow (nothing is actually paid, so these
            normally all answer "not found")
        use_qr: Request QR codes instead of plain URLs

    Returns:
        LoadTestResult with statistics
    """
    print(f"\n🚀 Starting load test: {total_flows} flows, {concurrency} concurrent")

    results: List[dict] = []

    async with aiohttp.ClientSession() as session:
        for batch_start in range(0, total_flows, concurrency):
            batch_size = min(concurrency, total_flows - batch_start)
            tasks = [
                run_flow(session, base_url, batch_start + j, polls, use_qr)
                for j in range(batch_size)
            ]

            batch_results = await asyncio.gather(*tasks)
            results.extend(batch_results)

            print(f"  Progress: {len(results)}/{total_flows}", end="\r")

    print()

    latencies = sorted(r["latency_ms"] for r in results)

    return LoadTestResult(
        total_flows=len(results),
        checkouts_created=sum(1 for r in results if r["checkout"]),
        payment_requests_created=sum(1 for r in results if r["payment_request"]),
        verify_polls=sum(r["polls"] for r in results),
        verified=sum(1 for r in results if r["verified"]),
        failures=sum(1 for r in results if r["error"]),
        avg_latency_ms=statistics.mean(latencies) if latencies else 0,
        p95_latency_ms=latencies[int(len(latencies) * 0.95)] if latencies else 0,
        p99_latency_ms=latencies[int(len(latencies) * 0.99)] if latencies else 0
    )


async def main():
    """Run the load test"""
    import argparse

    parser = argparse.ArgumentParser(description="Zule Mesh Store Load Test")
    parser.add_argument("--url", default="http://localhost:5000", help="Base URL")
    parser.add_argument("--flows", type=int, default=50, help="Total buyer flows")
    parser.add_argument("--concurrency", type=int, default=10, help="Concurrent flows")
    parser.add_argument("--polls", type=int, default=3, help="Verify polls per flow")
    parser.add_argument("--qr", action="store_true", help="Request QR codes")

    args = parser.parse_args()

    result = await run_load_test(
        base_url=args.url,
        total_flows=args.flows,
        concurrency=args.concurrency,
        polls=args.polls,
        use_qr=args.qr
    )

    print(result)


if __name__ == "__main__":
    asyncio.run(main())
