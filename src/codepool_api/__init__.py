"""Exactly-once redemption code dispenser."""
