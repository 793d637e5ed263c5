# src/moveobject/clients/__init__.py
"""Remote object-store client adapters."""

from moveobject.clients.minio import MinioObjectStore, MinioObjectStream, build_client

__all__ = ["MinioObjectStore", "MinioObjectStream", "build_client"]
