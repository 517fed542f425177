"""Petstore API used as the test fixture definition."""
