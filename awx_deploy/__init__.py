# =============================================================================
# AWX Deploy Gateway
# =============================================================================
# Provisions a scoped AWX inventory, launches a job template against one host,
# lets the caller poll the job and tears the inventory down on finalize.
# =============================================================================

__version__ = "0.1.0"
