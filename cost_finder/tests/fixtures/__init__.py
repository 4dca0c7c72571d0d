"""Test fixtures for the cost finder."""
