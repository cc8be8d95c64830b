"""
core/executor/
Executor de planos: portões de segurança, handlers de ação e auditoria.
"""

from .audit_log import AuditLog
from .confirm import Confirmer, ConsoleConfirmer
from .plan_io import load_plan, save_plan
from .preflight import preflight
from .runner import ExecutorOptions, run_executor

__all__ = [
    "AuditLog",
    "Confirmer",
    "ConsoleConfirmer",
    "ExecutorOptions",
    "load_plan",
    "preflight",
    "run_executor",
    "save_plan",
]
