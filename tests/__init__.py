"""Test suite for the Eurostat pipeline.

This package contains:
- Unit tests for the codec, normalizers, anomaly engine and helpers
- Integration tests for the complete load pipeline and CLI
"""
