"""Reporting jobs built on the planning core and the API clients."""
