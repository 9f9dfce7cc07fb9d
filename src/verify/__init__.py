"""External verification steps delegated to other tools."""
