"""PestHub field-service backend: access control, user management and report sharing."""

__version__ = "0.1.0"
