"""Outbound notification transports."""
