"""
Metrics Archiver - export CloudWatch telemetry to size-bounded S3 archives
with a cluster/node index, and import the archives back to disk.
"""

__version__ = "1.0.0"
