"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name: str, documentation: str, labelnames=()):
    # Already registered after a module reload
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Application metrics
applications_submitted_counter = _counter(
    'scholarstream_applications_submitted_total',
    'Total number of application submissions',
    ['status']
)

status_transitions_counter = _counter(
    'scholarstream_status_transitions_total',
    'Total number of application status change requests',
    ['to_status', 'outcome']
)

# Payment metrics
checkout_sessions_counter = _counter(
    'scholarstream_checkout_sessions_total',
    'Total number of Stripe checkout session requests',
    ['status']
)

webhook_events_counter = _counter(
    'scholarstream_webhook_events_total',
    'Total number of Stripe webhook deliveries',
    ['event_type', 'outcome']
)
