"""Health subsystem: service probes and the report aggregator."""

from .aggregator import HealthAggregator, HealthReport, derive_overall_status
from .engine import OverallStatus, ServiceCheckResult, ServiceStatus
