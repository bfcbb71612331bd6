"""
Monitor package for reservation calendar availability.

This package contains:
- Calendar navigation with multi-signal verification
- Visual change classification against stored baselines
- Baseline storage and notification throttling
- Webhook alerting
- Run orchestration and scheduling
"""

__version__ = "1.0.0"
