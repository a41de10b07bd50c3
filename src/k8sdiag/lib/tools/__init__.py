"""Registry and on-disk cache of the external diagnostic tools."""
