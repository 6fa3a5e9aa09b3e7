"""Scholarship postings and the fee/deadline helpers shared with applications"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from scholarstream.core.errors import ConflictError, NotFoundError, ValidationError
from scholarstream.db.store import Store, UpdateResult
from scholarstream.models.scholarship import Scholarship

logger = logging.getLogger(__name__)

# Calendar dates travel as day/month/year text, e.g. "31/12/2026"
DATE_FORMAT = "%d/%m/%Y"

EDITABLE_FIELDS = (
    "name", "university_name", "image", "country", "category", "subject_category",
    "degree", "description", "application_fee", "service_charge", "deadline"
)


def parse_calendar_date(value: Any, field: str = "deadline") -> date:
    """Parse a dd/mm/yyyy string into a date"""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a dd/mm/yyyy date string")
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f"{field} '{value}' is not a valid dd/mm/yyyy date")


def format_calendar_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def require_whole_amount(value: Any, field: str) -> int:
    """Return ``value`` as a non-negative whole currency amount.

    Missing, boolean, fractional, non-numeric and negative values are rejected
    rather than coerced, so a bad fee can never turn into a zero charge.
    """
    if value is None:
        raise ValidationError(f"{field} is missing")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, float) and value.is_integer():
        amount = int(value)
    else:
        raise ValidationError(f"{field} must be a whole currency amount, got {value!r}")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def scholarship_to_dict(scholarship: Scholarship) -> Dict[str, Any]:
    return {
        "id": scholarship.id,
        "name": scholarship.name,
        "university_name": scholarship.university_name,
        "image": scholarship.image,
        "country": scholarship.country,
        "category": scholarship.category,
        "subject_category": scholarship.subject_category,
        "degree": scholarship.degree,
        "description": scholarship.description,
        "application_fee": scholarship.application_fee,
        "service_charge": scholarship.service_charge,
        "deadline": scholarship.deadline,
        "post_date": scholarship.post_date,
        "posted_by": scholarship.posted_by
    }


def _validate_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(fields)
    if "deadline" in cleaned:
        cleaned["deadline"] = format_calendar_date(parse_calendar_date(cleaned["deadline"]))
    for field in ("application_fee", "service_charge"):
        if field in cleaned:
            cleaned[field] = require_whole_amount(cleaned[field], field)
    return cleaned


def create_scholarship(store: Store, data: Dict[str, Any], posted_by: str, today: Optional[date] = None) -> Dict[str, Any]:
    """Create a scholarship posting; post_date is stamped by the server"""
    fields = _validate_fields({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
    today = today or datetime.now(timezone.utc).date()

    scholarship = Scholarship(
        **fields,
        post_date=format_calendar_date(today),
        posted_by=posted_by
    )
    scholarship = store.scholarships.add(scholarship)
    logger.info(f"Scholarship {scholarship.id} posted by {posted_by}")
    return scholarship_to_dict(scholarship)


def get_scholarship(store: Store, scholarship_id: int) -> Dict[str, Any]:
    scholarship = store.scholarships.get(scholarship_id)
    if not scholarship:
        raise NotFoundError("Scholarship not found")
    return scholarship_to_dict(scholarship)


def list_scholarships(
    store: Store,
    search: Optional[str] = None,
    category: Optional[str] = None,
    skip: int = 0,
    limit: int = 50
) -> List[Dict[str, Any]]:
    return [
        scholarship_to_dict(s)
        for s in store.scholarships.list(search=search, category=category, skip=skip, limit=limit)
    ]


def update_scholarship(store: Store, scholarship_id: int, data: Dict[str, Any]) -> UpdateResult:
    fields = _validate_fields({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
    result = store.scholarships.update_fields(scholarship_id, **fields)
    if not result.matched_count:
        raise NotFoundError("Scholarship not found")
    return result


def delete_scholarship(store: Store, scholarship_id: int) -> int:
    if store.applications.count_for_scholarship(scholarship_id):
        raise ConflictError("Scholarship has applications and cannot be deleted")
    deleted = store.scholarships.delete(scholarship_id)
    if not deleted:
        raise NotFoundError("Scholarship not found")
    logger.info(f"Scholarship {scholarship_id} deleted")
    return deleted
