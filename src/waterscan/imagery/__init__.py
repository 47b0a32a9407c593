"""Imagery modules - sensors, collections and composites."""

from waterscan.imagery.collections import (
    NoImageryError,
    get_composite,
    load_collection,
    median_composite,
)
from waterscan.imagery.sensors import SENSORS, SensorSpec, get_sensor

__all__ = [
    "SENSORS",
    "SensorSpec",
    "get_sensor",
    "load_collection",
    "median_composite",
    "get_composite",
    "NoImageryError",
]
