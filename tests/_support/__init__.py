"""
Test support utilities for axiom-spine tests.

Helpers that are not pytest fixtures but are shared across test modules
live here (see ``semantic`` for the concept-keyed classifier mock).
"""
