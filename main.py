"""
Offline console driver for the booking core.

Runs against a freshly seeded in-memory store, so no database or network
access is needed. Useful for demo walkthroughs of the booking lifecycle.

Usage:
    python main.py demo
    python main.py slots --date 2025-03-10
    python main.py services
"""

import argparse
import asyncio
import sys

from booking_core.auth import AuthContext
from booking_core.config import settings
from booking_core.errors import BookingError
from booking_core.storage.store import InMemoryStore
from booking_core.tools.booking import BookingManager
from booking_core.tools.services import ServiceCatalog

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

ADMIN = AuthContext.admin(user_id="console-admin")


class ConsoleSession:
    """Seeded store plus managers, with printing helpers."""

    def __init__(self) -> None:
        self.store = InMemoryStore()
        self.catalog = ServiceCatalog(self.store)
        self.manager = BookingManager(self.store)

    def say(self, text: str) -> None:
        print(f"{GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def fail(self, exc: BookingError) -> None:
        print(f"{RED}  !! {type(exc).__name__}: {exc.message}{RESET}")

    async def seed(self) -> list[str]:
        return await self.catalog.seed_default_services(ADMIN)

    async def show_services(self) -> None:
        await self.seed()
        print(f"{BOLD}{settings.business.name} services{RESET}")
        for service in await self.catalog.get_active_services():
            self.say(f"{service.name:<26} {service.price:>6}  {service.duration}")

    async def show_slots(self, date: str) -> None:
        response = await self.manager.get_available_time_slots(date)
        print(f"{BOLD}Open slots on {date}{RESET} ({len(response.available_slots)}/{response.total_slots})")
        self.say(", ".join(response.available_slots) or "Fully booked")

    async def run_demo(self, date: str) -> None:
        service_ids = await self.seed()
        service_id = service_ids[0]
        guest = AuthContext.guest(email="jane@example.com")
        request = {
            "customerName": "Jane Doe",
            "customerEmail": "jane@example.com",
            "customerPhone": "(726) 207-1007",
            "serviceId": service_id,
            "preferredDate": date,
            "preferredTime": "2:00 PM",
            "vehicleType": "suv",
        }

        print(f"{YELLOW}{BOLD}1. Guest books {date} at 2:00 PM{RESET}")
        booking_id = await self.manager.create_booking(request, auth=guest)
        self.system_log(f"booking {booking_id} created as pending")

        print(f"{YELLOW}{BOLD}2. Second guest asks for the same slot{RESET}")
        try:
            await self.manager.create_booking({**request, "customerEmail": "sam@example.com"})
        except BookingError as exc:
            self.fail(exc)

        await self.show_slots(date)

        print(f"{YELLOW}{BOLD}3. Admin confirms, starts and completes the job{RESET}")
        for step in (self.manager.confirm_booking, self.manager.start_booking):
            booking = await step(booking_id, ADMIN)
            self.system_log(f"status -> {booking.status.value}")
        booking = await self.manager.complete_booking(booking_id, ADMIN, notes="Ceramic coat applied")
        self.system_log(f"status -> {booking.status.value}")

        print(f"{YELLOW}{BOLD}4. Customer tries to cancel a completed job{RESET}")
        try:
            await self.manager.cancel_booking(booking_id, "changed my mind", auth=guest)
        except BookingError as exc:
            self.fail(exc)

        print(f"{YELLOW}{BOLD}5. Dashboard{RESET}")
        stats = await self.manager.get_booking_stats(ADMIN)
        self.say(str(stats.to_record()))


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking core console")
    sub = parser.add_subparsers(dest="command", required=True)
    demo = sub.add_parser("demo", help="Walk through a scripted booking lifecycle")
    demo.add_argument("--date", default="2025-03-10")
    slots = sub.add_parser("slots", help="List open slots for a date on an empty calendar")
    slots.add_argument("--date", required=True)
    sub.add_parser("services", help="List the default service catalog")
    args = parser.parse_args()

    session = ConsoleSession()
    try:
        if args.command == "demo":
            asyncio.run(session.run_demo(args.date))
        elif args.command == "slots":
            asyncio.run(session.show_slots(args.date))
        else:
            asyncio.run(session.show_services())
    except BookingError as exc:
        session.fail(exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
