"""Pipelines for import, answer extraction and normalization, and completion scoring.

Each step is callable independently so both the batch driver and the
import endpoint share the same normalization code.
"""
