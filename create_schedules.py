"""
Bulk-create consultation slots.

    python create_schedules.py [--days N] [--start YYYY-MM-DD] [counselor_id ...]

Without counselor ids every counselor profile gets slots. Existing slots with
the same counselor and start time are left alone, so the script can be re-run.
"""
import argparse
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List

from config import APP_TIMEZONE, configure_logging
from database import db, create_document, get_documents
from schemas import ConsultationSchedule
from slot_matcher import local_slot_time

logger = logging.getLogger(__name__)

SLOT_TIMES = [("09:00", "10:00"), ("10:00", "11:00"), ("11:00", "12:00"),
              ("14:00", "15:00"), ("15:00", "16:00"), ("16:00", "17:00")]
PRICE_PER_SLOT = 150
DEFAULT_DAYS = 7


def slots_for_day(counselor_id: str, day: datetime) -> List[ConsultationSchedule]:
    return [
        ConsultationSchedule(
            counselor_id=counselor_id,
            start_time=local_slot_time(day, start, APP_TIMEZONE),
            end_time=local_slot_time(day, end, APP_TIMEZONE),
            price=PRICE_PER_SLOT,
        )
        for start, end in SLOT_TIMES
    ]


def create_schedules(counselor_ids: Iterable[str], start: date, days: int = DEFAULT_DAYS) -> int:
    created = 0
    for counselor_id in counselor_ids:
        for offset in range(days):
            day = datetime.combine(start + timedelta(days=offset), datetime.min.time())
            for slot in slots_for_day(counselor_id, day):
                if db["consultationschedule"].count_documents(
                        {"counselor_id": counselor_id, "start_time": slot.start_time}):
                    continue
                create_document("consultationschedule", slot)
                created += 1
        logger.info("Slots ready for counselor %s", counselor_id)
    return created


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create consultation slots for counselors")
    parser.add_argument("counselor_ids", nargs="*")
    parser.add_argument("--days", type=int, default=DEFAULT_DAYS)
    parser.add_argument("--start", type=date.fromisoformat, default=date.today())
    args = parser.parse_args(argv)

    configure_logging()
    ids = args.counselor_ids or [c["_id"] for c in get_documents("counselor")]
    if not ids:
        logger.warning("No counselors found, nothing to do")
        return 0
    created = create_schedules(ids, args.start, args.days)
    logger.info("Created %d slots for %d counselors", created, len(ids))
    return created


if __name__ == "__main__":
    main()
