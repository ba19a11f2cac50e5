"""Teacher competency assessment engine: attempt lifecycle, scoring and routing."""
