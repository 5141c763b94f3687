"""Shared errors, logging, constants, models and protocols."""
