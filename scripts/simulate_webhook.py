"""
Simulate an LMS course-completion webhook against a running instance.

Usage:
    python scripts/simulate_webhook.py
    python scripts/simulate_webhook.py --shape flat --user-id 42 --course-id 7
    python scripts/simulate_webhook.py --event course.enrollment.created
"""
import argparse
import asyncio
import logging
import time

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"


def nested_payload(args) -> dict:
    """Envelope as delivered by the LMS (event.body.payload)."""
    return {
        "event": {
            "body": {
                "event": args.event,
                "message_id": args.message_id,
                "original_domain": args.domain,
                "fired_by_batch_action": False,
                "payload": {
                    "user_id": args.user_id,
                    "course_id": args.course_id,
                    "completion_date": args.completion_date,
                    "status": "completed",
                    "fired_at": args.completion_date,
                },
            }
        },
        "context": {},
    }


def flat_payload(args) -> dict:
    return {
        "event": args.event,
        "message_id": args.message_id,
        "original_domain": args.domain,
        "payload": {
            "user_id": args.user_id,
            "course_id": args.course_id,
            "completion_date": args.completion_date,
        },
    }


async def main():
    parser = argparse.ArgumentParser(description="Simulate an LMS completion webhook")
    parser.add_argument("--shape", default="nested", choices=["nested", "flat"])
    parser.add_argument("--event", default="course.enrollment.completed")
    parser.add_argument("--message-id", default=f"sim_{int(time.time())}")
    parser.add_argument("--domain", default="acme.docebosaas.com")
    parser.add_argument("--user-id", type=int, default=12345)
    parser.add_argument("--course-id", type=int, default=101)
    parser.add_argument("--completion-date", default="2024-03-01 10:00:00")
    parser.add_argument("--url", default=BASE_URL)
    args = parser.parse_args()

    payload = nested_payload(args) if args.shape == "nested" else flat_payload(args)
    logger.info("Sending %s webhook %s (%s)...", args.shape, args.message_id, args.event)

    async with httpx.AsyncClient(timeout=60) as client:
        resp = await client.post(f"{args.url}/api/v1/webhook", json=payload)
        logger.info("Webhook response: %s %s", resp.status_code, resp.text)


if __name__ == "__main__":
    asyncio.run(main())
