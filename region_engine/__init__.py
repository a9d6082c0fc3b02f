"""Region definition and boundary-aggregation engine.

Tools for authoring signed state/county/zipcode rule sets for Areas and
Communities, and for merging zipcode polygons into region boundaries.
"""

__version__ = "0.1.0"
