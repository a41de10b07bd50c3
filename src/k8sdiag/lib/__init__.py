"""Library layer shared by the CLI commands."""
