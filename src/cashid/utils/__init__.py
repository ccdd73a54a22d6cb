"""Utility helpers for CashID."""
