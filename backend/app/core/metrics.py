"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name, documentation, labelnames=()):
    # Re-importing the module (e.g. under test reloads) must not re-register
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


payment_sessions_created_counter = _counter(
    'flowkora_payment_sessions_created_total',
    'Total number of payment sessions created',
    ['currency']
)

payment_sessions_conflicts_counter = _counter(
    'flowkora_payment_session_conflicts_total',
    'Total number of rejected duplicate order ids'
)

reconciliations_counter = _counter(
    'flowkora_reconciliations_total',
    'Total number of payment status webhooks processed',
    ['outcome']
)

api_keys_issued_counter = _counter(
    'flowkora_api_keys_issued_total',
    'Total number of API keys issued'
)

wallet_verifications_counter = _counter(
    'flowkora_wallet_verifications_total',
    'Total number of payout wallet verification attempts',
    ['status']
)

merchant_notifications_counter = _counter(
    'flowkora_merchant_notifications_total',
    'Total number of merchant webhook notifications attempted',
    ['status']
)

login_attempts_counter = _counter(
    'flowkora_login_attempts_total',
    'Total number of identity provider callbacks',
    ['status']
)
