"""Building blocks for a Mercure hub: events, hub options, JWT authorization, a demo endpoint, configuration and version information."""

__version__ = "0.15.5"