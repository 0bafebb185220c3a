"""
HTTP layer for the WebUntis feed service.

This module provides:
- The RSS feed endpoint
- A plain-text health check
- The static feed icon
"""
