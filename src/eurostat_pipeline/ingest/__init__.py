"""Ingest package for data acquisition and loading.

This package fetches indicator responses from the Eurostat API, falls
back to the local data file, and runs the complete load sequence.
"""
