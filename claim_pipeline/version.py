"""Version information."""

VERSION = "0.1.0"
REPORT_SCHEMA_VERSION = 1
