"""Booking lifecycle, conflict detection and availability for a detailing studio."""

__version__ = "0.1.0"
