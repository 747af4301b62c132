"""Attendance analytics package.

Feature modules (attendance, analytics, notifications, overrides) each keep a
thin Flask controller on top of service/repository layers.
"""
