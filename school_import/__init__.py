"""Bulk import of students, teachers, parents and classes into the school API."""

__version__ = "0.1.0"
