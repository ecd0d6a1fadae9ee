"""Attachment storage module.

Backends:
    - LocalObjectStorage: files under a local directory, served by GET /files/{path}
    - S3ObjectStorage: objects in an S3 bucket (boto3)
"""
