"""
Test suite for the Clinic Booking System.

Covers schedule resolution, conflict detection, booking, the appointment
lifecycle, billing and payment reconciliation.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
