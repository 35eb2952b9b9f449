"""Proskill phone + OTP authentication core."""

__version__ = "1.0.0"
