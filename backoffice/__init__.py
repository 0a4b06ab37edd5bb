"""Backend package: DB models, pipelines, APIs.

This package orchestrates form response import, answer normalization,
completion scoring and document merge for the back office.
"""
