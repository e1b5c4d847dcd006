"""Query, diff and safely mutate component & design-token registries."""

__version__ = "0.4.0"
