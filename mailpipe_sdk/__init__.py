"""Shared helpers used across the mailpipe packages."""
