"""Shared test fixtures and fakes for NimKit tests."""
