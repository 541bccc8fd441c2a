"""Verification flows, requirement checks and profile bookkeeping."""
