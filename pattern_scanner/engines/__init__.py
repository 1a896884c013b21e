"""Analysis engines: swings, levels, patterns, Elliott waves, smart money and signals."""
