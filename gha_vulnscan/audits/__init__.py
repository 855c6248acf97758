from .base import (
    Audit,
    AuditConfig,
    AuditError,
    AuditResults,
    AuditSetupError,
    build_audits,
    close_audits,
    register_audit,
    registered_audits,
    run_audits,
)

__all__ = [
    "Audit",
    "AuditConfig",
    "AuditError",
    "AuditResults",
    "AuditSetupError",
    "build_audits",
    "close_audits",
    "register_audit",
    "registered_audits",
    "run_audits",
]

# Import all audit modules so they register themselves via @register_audit
from . import known_vulnerable_actions
