"""
Clinic Booking System

FastAPI service that resolves doctors' weekly schedules into open windows,
books conflict-free appointments, drives them through their lifecycle and
bills visits with payment reconciliation.
"""

__version__ = "1.0.0"
