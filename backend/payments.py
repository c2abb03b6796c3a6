"""
Payment options for an approved application, plus installment plan math.

Nothing here talks to a payment gateway: these helpers only describe what
the student may pay and when. Persisting the schedule is the payment
service's job.
"""

import copy
import math
from datetime import datetime

import pandas as pd

from normalizer import normalize_course, parse_timestamp, to_float
from validators import InvalidInputError

PAYMENT_FULL = "FULL"
PAYMENT_INSTALLMENT = "INSTALLMENT"

DEFAULT_INSTALLMENT_PLANS = [
    {
        "id": "standard",
        "name": "Standard Plan",
        "number_of_installments": 1,
        "first_payment_percentage": 100,
        "monthly_percentage": 0,
    },
    {
        "id": "3-month",
        "name": "3-Month Plan",
        "number_of_installments": 3,
        "first_payment_percentage": 40,
        "monthly_percentage": 30,
    },
    {
        "id": "6-month",
        "name": "6-Month Plan",
        "number_of_installments": 6,
        "first_payment_percentage": 30,
        "monthly_percentage": 14,
    },
]


def resolve_payment_options(course) -> list[dict]:
    """
    Full payment is always offered. Installments only when the course has
    installment_enabled set and carries an installment_plan.
    """
    course = normalize_course(course, require_id=False)
    price = course["price"]
    options = [{"type": PAYMENT_FULL, "amount": price}]
    plan = course["installment_plan"]
    if course["installment_enabled"] is True and plan is not None:
        options.append({
            "type": PAYMENT_INSTALLMENT,
            "amount": price,
            "upfront_percent": plan["upfront"],
        })
    return options


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_installment_plans() -> list[dict]:
    return copy.deepcopy(DEFAULT_INSTALLMENT_PLANS)


def calculate_installment_plan(plan_id: str, course_price) -> dict:
    """
    Price out one of the default plans for a course.

    Amounts are whole currency units, rounded half-up.
    """
    plan = next((p for p in DEFAULT_INSTALLMENT_PLANS if p["id"] == plan_id), None)
    if plan is None:
        raise InvalidInputError(f"Invalid installment plan: {plan_id!r}")
    price = to_float(course_price, None)
    if price is None or price < 0:
        raise InvalidInputError("course_price must be a non-negative number.")

    priced = dict(plan)
    priced["total_amount"] = price
    priced["first_payment_amount"] = _round_half_up(price * plan["first_payment_percentage"] / 100)
    priced["monthly_amount"] = _round_half_up(price * plan["monthly_percentage"] / 100)
    return priced


def build_installment_schedule(plan: dict, application_fee, start) -> list[dict]:
    """
    Due payments for a priced plan, in order:
      - application fee, due at start (installment_number 0)
      - first installment, due at start, when non-zero
      - monthly installments 2..n, one calendar month apart
    """
    start_at: datetime | None = parse_timestamp(start)
    if start_at is None:
        raise InvalidInputError("start must be a valid timestamp.")

    payments = [{
        "type": "APPLICATION_FEE",
        "amount": to_float(application_fee, 0.0),
        "due_date": start_at,
        "installment_number": 0,
        "status": "PENDING",
    }]

    if plan.get("first_payment_amount", 0) > 0:
        payments.append({
            "type": PAYMENT_INSTALLMENT,
            "amount": plan["first_payment_amount"],
            "due_date": start_at,
            "installment_number": 1,
            "status": "PENDING",
        })

    for number in range(2, int(plan.get("number_of_installments", 1)) + 1):
        due = pd.Timestamp(start_at) + pd.DateOffset(months=number - 1)
        payments.append({
            "type": PAYMENT_INSTALLMENT,
            "amount": plan["monthly_amount"],
            "due_date": due.to_pydatetime(),
            "installment_number": number,
            "status": "PENDING",
        })
    return payments
