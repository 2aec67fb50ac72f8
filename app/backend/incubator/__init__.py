"""Arts incubator workspace backend."""
