"""Notebox — personal notes behind a login.

Users sign up with a password or through Google, then keep private notes
tagged from a shared, normalized tag vocabulary.
"""

__version__ = "0.1.0"
