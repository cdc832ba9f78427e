"""
Timeout and retry constants for bootcore.

Centralizes timeout values to ensure consistency across the codebase
and make tuning easier.
"""

from __future__ import annotations

# =============================================================================
# Action Timeouts
# =============================================================================

# Default time allowed for a single install/apply operation
DEFAULT_ACTION_TIMEOUT_S = 600.0

# Helm needs a little longer than the action timeout to report back
HELM_TIMEOUT_MARGIN_S = 30.0

# =============================================================================
# Readiness Gate Timeouts
# =============================================================================

# Default interval between readiness evaluations
DEFAULT_POLL_INTERVAL_S = 5.0

# Default overall readiness timeout (kubectl wait --timeout=600s)
DEFAULT_GATE_TIMEOUT_S = 600.0

# =============================================================================
# Probe Timeouts
# =============================================================================

# Default timeout for a single health probe
DEFAULT_PROBE_TIMEOUT_S = 30.0

# Time in-flight probes get to finish after cancellation
DEFAULT_PROBE_GRACE_PERIOD_S = 5.0

# Default number of probes executed concurrently
DEFAULT_PROBE_CONCURRENCY = 4

# Timeout for HTTP health probes
HTTP_HEALTH_CHECK_TIMEOUT_S = 5.0

# =============================================================================
# Subprocess Timeouts
# =============================================================================

# Default timeout for kubectl get/list calls
SUBPROCESS_DEFAULT_TIMEOUT_S = 30

# =============================================================================
# Retry Configuration
# =============================================================================

# Initial delay between retries
DEFAULT_RETRY_DELAY_S = 1.0

# Exponential backoff multiplier
DEFAULT_RETRY_BACKOFF = 2.0

# Upper bound for a single backoff sleep
DEFAULT_RETRY_MAX_DELAY_S = 60.0

# =============================================================================
# OTel Provider Timeouts
# =============================================================================

# Timeout for force_flush operations on TracerProvider
OTEL_FLUSH_TIMEOUT_MS = 5000
