"""catalog_charts package initializer.

This package contains the aggregation pipeline behind the catalog charts
used by the Shiny application and the command line.  Modules include data
loading, aggregation and plotting helpers.  See individual module
docstrings for details.
"""
