"""GeoTIFF elevation import and terrain resampling toolkit."""

__version__ = "0.1.0"
