"""
FastAPI trigger service for the availability monitor.

This module provides:
- On-demand monitor runs over HTTP
- Health and service description endpoints
"""
