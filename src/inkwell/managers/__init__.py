"""Singletons managing logging, Redis and the response cache."""
