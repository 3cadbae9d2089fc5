"""Shared test fixtures for the txisolate test suite.

- models.py: the illustrative ``Widget`` table used against a real store
"""
