"""
Service layer for business logic.

This package contains service classes that orchestrate the
subscription detection pipeline: statement parsing, merchant
grouping, recurrence detection and reporting.
"""
