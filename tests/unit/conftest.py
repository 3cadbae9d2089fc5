"""Unit test configuration.

Unit tests in this directory:
- Do NOT load the txisolate pytest plugin
- Use a throwaway SQLite file where a real store is needed
- Focus on testing logic in isolation

Run with: pytest tests/unit/ -x
"""
