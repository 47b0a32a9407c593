"""Rendering - folium maps and matplotlib charts."""
