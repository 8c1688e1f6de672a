"""
Fertility window and ovulation estimate from observed period days.

Rules:
- ovulation date = first period day + 14 days
- fertile window = the 12 consecutive days after the last period day
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Sequence

OVULATION_OFFSET_DAYS = 14
FERTILE_WINDOW_DAYS = 12

PILL_MESSAGE = "Today is the day to start taking your contraceptive pill!"
OVULATION_MESSAGE = "Today is your ovulation day, the chance of conception is highest!"


class InvalidPeriodDays(ValueError):
    pass


@dataclass
class CyclePrediction:
    ovulation_date: date
    fertile_window: List[date]


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            raise InvalidPeriodDays(f"Invalid period day: {value!r}")
    raise InvalidPeriodDays(f"Invalid period day: {value!r}")


def normalize_period_days(period_days: Any) -> List[date]:
    if not isinstance(period_days, (list, tuple)) or len(period_days) == 0:
        raise InvalidPeriodDays("period_days is required and must be a non-empty array.")
    return [_as_date(d) for d in period_days]


def predict_cycle(period_days: Sequence[Any]) -> CyclePrediction:
    days = normalize_period_days(period_days)
    ovulation = days[0] + timedelta(days=OVULATION_OFFSET_DAYS)
    fertile_start = days[-1] + timedelta(days=1)
    window = [fertile_start + timedelta(days=i) for i in range(FERTILE_WINDOW_DAYS)]
    return CyclePrediction(ovulation_date=ovulation, fertile_window=window)


def cycle_reminders(customer_id: str, period_days: Sequence[Any], ovulation_date: date) -> List[Dict[str, Any]]:
    """The two reminders scheduled alongside a new cycle."""
    first_day = normalize_period_days(period_days)[0]
    return [
        {"customer_id": customer_id, "type": "Pill", "date": first_day, "message": PILL_MESSAGE, "is_sent": False},
        {"customer_id": customer_id, "type": "Ovulation", "date": ovulation_date, "message": OVULATION_MESSAGE, "is_sent": False},
    ]
