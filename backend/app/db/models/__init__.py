"""
Models package — re-exports Base and all models.

Import models here so ``Base.metadata`` picks up every table automatically
(``init_models`` creates them from it).

When adding a new model:
    1. Create `app/db/models/<table_name>.py`
    2. Import it here
"""

from app.db.models.base import Base
from app.db.models.api_config import ApiAuthConfig, ApiSettings, SecondaryApiConfig
from app.db.models.email_config import EmailMonitoringConfig
from app.db.models.extraction import ExtractionGroupData, ExtractionType
from app.db.models.notification import NotificationLog, NotificationTemplate
from app.db.models.user import User
from app.db.models.workflow import Workflow, WorkflowStep
from app.db.models.workflow_execution_log import WorkflowExecutionLog
from app.db.models.workflow_step_log import WorkflowStepLog

__all__ = [
    "Base",
    "ApiAuthConfig",
    "ApiSettings",
    "SecondaryApiConfig",
    "EmailMonitoringConfig",
    "ExtractionGroupData",
    "ExtractionType",
    "NotificationLog",
    "NotificationTemplate",
    "User",
    "Workflow",
    "WorkflowStep",
    "WorkflowExecutionLog",
    "WorkflowStepLog",
]
