"""Reconciliation layer.

This package is the single owner of the merged squad view: local
position samples and polled squad snapshots are turned into events
and applied to one engine instance, never merged from multiple call
sites.
"""
