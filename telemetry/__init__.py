"""Incubator telemetry (temperature / humidity) feed."""

from .feed import TelemetryFeed, TelemetryHistory, TelemetryReading

__all__ = ["TelemetryFeed", "TelemetryHistory", "TelemetryReading"]
