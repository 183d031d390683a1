"""Encoders for snapshots."""

from homers.core.encoding.prometheus import encode, encode_openmetrics

__all__ = ["encode", "encode_openmetrics"]
