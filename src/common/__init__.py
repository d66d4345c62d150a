"""Shared helpers: errors, logging, events and HTTP transport."""
