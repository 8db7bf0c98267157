"""Prometheus metrics for the application"""
from prometheus_client import Counter, Gauge, REGISTRY


def _counter(name, documentation, labelnames=()):
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        # Already registered (module re-imported, e.g. under test reloads)
        return REGISTRY._names_to_collectors.get(name)


def _gauge(name, documentation, labelnames=()):
    try:
        return Gauge(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Face metrics
face_index_results_counter = _counter(
    'snapmatch_face_index_results_total',
    'Face indexing attempts by result status',
    ['status']
)

selfie_search_results_counter = _counter(
    'snapmatch_selfie_search_results_total',
    'Selfie searches by result status',
    ['status']
)

# Payment metrics
stripe_webhooks_counter = _counter(
    'snapmatch_stripe_webhooks_total',
    'Stripe webhook deliveries by event type and outcome',
    ['event_type', 'outcome']
)

purchase_transitions_counter = _counter(
    'snapmatch_purchase_transitions_total',
    'Purchase rows moved by webhook reconciliation',
    ['outcome']
)

# Delivery metrics
downloads_counter = _counter(
    'snapmatch_downloads_total',
    'Download authorizations by kind and result',
    ['kind', 'result']
)

# Realtime metrics
realtime_subscriptions_gauge = _gauge(
    'snapmatch_realtime_subscriptions',
    'Live realtime subscriptions in this process'
)
