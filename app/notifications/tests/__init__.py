"""
Tests for notifications app.

This package contains test modules for:
- test_services.py: NotificationEnqueuer payloads and queue inserts

Usage:
    pytest notifications/tests/
"""
