"""Mallikarjuna Hospital offline caching and deferred-submission agent."""
