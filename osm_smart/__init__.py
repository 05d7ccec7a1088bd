"""
OSM Smart: location-based tourism service.

Geolocated Overpass searches, a Redis-backed tile cache, a curated tag
taxonomy and Gemini summaries turned into map markers.
"""

__version__ = "0.1.0"
