"""sysanalyzer - periodic host telemetry with anomaly detection."""

__version__ = "0.1.0"
