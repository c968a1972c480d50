"""toolforge - turn stored code snippets into sandboxed, schema-described tools."""

__version__ = "0.1.0"
