"""Shared building blocks: exceptions, logging, retry and settings."""
