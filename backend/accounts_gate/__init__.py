"""Accounts Gate: authentication and authorization for the accounting API."""
