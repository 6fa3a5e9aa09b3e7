"""Application submission and administrative status/feedback changes"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from scholarstream.core.errors import (
    ConflictError, DeadlineExpiredError, InvalidTransitionError,
    NotFoundError, PermissionDeniedError, ValidationError
)
from scholarstream.core.metrics import applications_submitted_counter, status_transitions_counter
from scholarstream.db.store import Store, UpdateResult
from scholarstream.models.application import APPLICATION_STATUSES, Application
from scholarstream.models.user import User
from scholarstream.services.scholarship_service import parse_calendar_date

logger = logging.getLogger(__name__)

# Status changes an administrator may make. Staying in the same status is
# always accepted and reported as matched but not modified.
ALLOWED_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": set(),
    "rejected": set(),
}

STAFF_ROLES = ("moderator", "admin")


def application_to_dict(application: Application) -> Dict[str, Any]:
    scholarship = application.scholarship
    return {
        "id": application.id,
        "user_id": application.user_id,
        "user_email": application.user_email,
        "user_name": application.user_name,
        "scholarship_id": application.scholarship_id,
        "scholarship_name": scholarship.name if scholarship else None,
        "university_name": scholarship.university_name if scholarship else None,
        "application_fee": application.application_fee,
        "service_charge": application.service_charge,
        "applicant_fields": application.applicant_fields or {},
        "application_status": application.application_status,
        "payment_status": application.payment_status,
        "application_date": application.application_date.isoformat() if application.application_date else None,
        "paid_at": application.paid_at.isoformat() if application.paid_at else None,
        "feedback": application.feedback
    }


def submit_application(
    store: Store,
    email: str,
    scholarship_id: int,
    applicant_fields: Optional[Dict[str, Any]] = None,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Create an application once every submission check has passed.

    Checks run in order: the caller is a student, there is no earlier
    application for the pair, the scholarship exists, and its deadline has not
    passed. Nothing is written unless all of them pass.
    """
    now = now or datetime.now(timezone.utc)

    user = store.users.get_by_email(email)
    if not user:
        raise NotFoundError("User not found")
    if user_id is not None and user_id != user.id:
        raise PermissionDeniedError("Cannot apply on behalf of another user")
    if user.role != "student":
        applications_submitted_counter.labels(status="forbidden").inc()
        raise PermissionDeniedError("Only students can apply for scholarships")

    if store.applications.find_for_pair(user.id, scholarship_id):
        applications_submitted_counter.labels(status="duplicate").inc()
        raise ConflictError("You have already applied for this scholarship")

    scholarship = store.scholarships.get(scholarship_id)
    if not scholarship:
        raise NotFoundError("Scholarship not found")

    deadline = parse_calendar_date(scholarship.deadline)
    # The deadline day itself is still open
    if now.date() > deadline:
        applications_submitted_counter.labels(status="expired").inc()
        raise DeadlineExpiredError(f"Application deadline {scholarship.deadline} has passed")

    application = Application(
        user_id=user.id,
        scholarship_id=scholarship.id,
        user_email=user.email,
        user_name=user.name,
        application_fee=scholarship.application_fee,
        service_charge=scholarship.service_charge,
        applicant_fields=applicant_fields or {},
        application_status="pending",
        payment_status="unpaid",
        application_date=now
    )
    try:
        application = store.applications.insert(application)
    except ConflictError:
        applications_submitted_counter.labels(status="duplicate").inc()
        raise

    applications_submitted_counter.labels(status="created").inc()
    logger.info(f"Application {application.id} created for user {user.id} on scholarship {scholarship.id}")
    return application_to_dict(application)


def get_application(store: Store, application_id: int, viewer: User) -> Dict[str, Any]:
    """Fetch one application; students only see their own"""
    application = store.applications.get(application_id)
    if not application:
        raise NotFoundError("Application not found")
    if application.user_id != viewer.id and viewer.role not in STAFF_ROLES:
        raise PermissionDeniedError("Not allowed to view this application")
    return application_to_dict(application)


def list_user_applications(store: Store, user: User) -> List[Dict[str, Any]]:
    return [application_to_dict(a) for a in store.applications.list(user_id=user.id)]


def list_applications(
    store: Store,
    application_status: Optional[str] = None,
    payment_status: Optional[str] = None
) -> List[Dict[str, Any]]:
    return [
        application_to_dict(a)
        for a in store.applications.list(application_status=application_status, payment_status=payment_status)
    ]


def update_application_status(store: Store, application_id: int, new_status: str) -> UpdateResult:
    """Move an application to ``new_status`` following ALLOWED_TRANSITIONS"""
    if new_status not in APPLICATION_STATUSES:
        status_transitions_counter.labels(to_status="invalid", outcome="rejected").inc()
        raise ValidationError(
            f"Invalid application status '{new_status}'. Expected one of: {', '.join(APPLICATION_STATUSES)}"
        )

    application = store.applications.get(application_id)
    if not application:
        raise NotFoundError("Application not found")

    current = application.application_status
    if new_status != current:
        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
            status_transitions_counter.labels(to_status=new_status, outcome="rejected").inc()
            raise InvalidTransitionError(f"Cannot change application status from {current} to {new_status}")
        if new_status == "approved" and application.payment_status != "paid":
            status_transitions_counter.labels(to_status=new_status, outcome="rejected").inc()
            raise InvalidTransitionError("Cannot approve an application whose fee has not been paid")

    result = store.applications.update_fields(application_id, application_status=new_status)
    outcome = "applied" if result.modified_count else "unchanged"
    status_transitions_counter.labels(to_status=new_status, outcome=outcome).inc()
    logger.info(f"Application {application_id} status {current} -> {new_status}")
    return result


def reject_application(store: Store, application_id: int) -> UpdateResult:
    return update_application_status(store, application_id, "rejected")


def update_feedback(store: Store, application_id: int, feedback: str) -> UpdateResult:
    result = store.applications.update_fields(application_id, feedback=feedback)
    if not result.matched_count:
        raise NotFoundError("Application not found")
    return result
