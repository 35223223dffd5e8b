"""Harvest DataCite-style metadata records from SDMX dataflow registries."""

__version__ = "0.1.0"
