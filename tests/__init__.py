"""Tests for Ledger Viewer."""
