"""
HTTP layer exposing the subscription detection pipeline.
"""
