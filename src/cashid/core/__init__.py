"""Protocol primitives: field catalogue, URL codec, error taxonomy."""
