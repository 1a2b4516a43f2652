"""chemsearch: search engine for compounds, elements, calculators and help articles."""

__version__ = "0.3.0"
