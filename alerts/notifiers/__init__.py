"""Notifier protocols."""
