"""
Core processing modules for subscription detection.

This package contains:
- catalog: Known subscription service table loader
- config: Application configuration and settings
- detection: Recurring subscription detection
- exceptions: Custom exception classes
- exporters: Excel export functionality
- logger: Logging configuration
- matching: Known service matching (substring and fuzzy)
- normalize: Amount, date and label normalization
- parsing: Bank statement CSV parsing
- profiles: Bank export profiles and header detection
- schema: Pydantic models for transactions and results
"""
