"""Chat-driven personal task list assistant"""

__version__ = "0.1.0"
