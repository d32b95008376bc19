"""External data sources for template expansion."""
