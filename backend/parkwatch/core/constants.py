"""
Centralized constants for the notifier and scheduler (Encapsulate What Changes).

Change job IDs or event vocabularies here instead of scattering literals across services and routes.
Tunable thresholds live in config.Settings (env-driven).
"""

# Scheduler job IDs (must match ids used in main.py add_job)
NOTIFY_JOB_ID = "notify_all"

# Event kinds emitted by the classifier
KIND_REOPEN = "reopen"
KIND_CLOSE = "close"
KIND_DPA_START = "dpa_start"
KIND_DPA_END = "dpa_end"
KIND_PP_START = "pp_start"
KIND_PP_END = "pp_end"
KIND_WAIT_SPIKE = "wait_spike"

EVENT_KINDS = (
    KIND_REOPEN,
    KIND_CLOSE,
    KIND_DPA_START,
    KIND_DPA_END,
    KIND_PP_START,
    KIND_PP_END,
    KIND_WAIT_SPIKE,
)

# Field families (first component of uniq_key)
FAMILY_OPERATING = "operating"
FAMILY_DPA = "dpa"
FAMILY_PP = "pp"
FAMILY_WAIT = "wait"

# Kinds that count toward open/close waves (rush suppression)
WAVE_KINDS = frozenset({KIND_REOPEN, KIND_CLOSE})

# Alert rule toggle required per kind; None = always allowed
RULE_FOR_KIND = {
    KIND_REOPEN: "notify_close_reopen",
    KIND_CLOSE: "notify_close_reopen",
    KIND_DPA_START: "notify_dpa_sale",
    KIND_DPA_END: "notify_dpa_sale",
    KIND_PP_START: "notify_dpa_sale",
    KIND_PP_END: "notify_dpa_sale",
    KIND_WAIT_SPIKE: None,
}

# Audience scope
SCOPE_FAVORITES = "favorites"
SCOPE_ALL = "all"
SCOPES = (SCOPE_FAVORITES, SCOPE_ALL)

# Principal kinds
PRINCIPAL_USER = "user"
PRINCIPAL_DEVICE = "device"

# Web Push: provider statuses meaning the endpoint is permanently gone
WEBPUSH_GONE_STATUSES = (404, 410)

# Pushover: status returned when the application is over its message quota
PUSHOVER_RATE_LIMITED_STATUS = 429
