"""Shared domain code for the rail fault tracker API."""
