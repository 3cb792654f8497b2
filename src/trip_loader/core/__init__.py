"""
Record-level processing: models, transformation and validation.
"""
