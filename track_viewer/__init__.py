"""Map viewer for location recorder data."""

import time

# Browsers compare this against the value they saw last to detect restarts
STARTUP_TIMESTAMP: float = time.time()
