"""Lookbook backend package: content queries, search index, pipelines, API.

This package serves the people/project directory, the semantic index job,
the admin extraction helpers and the share/lead event log.
"""
