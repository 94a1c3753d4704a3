# Database models

from .startup import Startup
from .api_key import ApiKey
from .revenue_metrics import RevenueMetrics
from .job_execution_log import JobExecutionLog

__all__ = [
    "Startup",
    "ApiKey",
    "RevenueMetrics",
    "JobExecutionLog"
]
