"""Shared utility helpers used by the senders."""
