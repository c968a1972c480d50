"""Dynamic tool framework.

Turns stored tool snippets into named, schema-described tools: name
normalization, static signature extraction, schema synthesis, building
and registry lookup. Execution lives in :mod:`toolforge.sandbox`.
"""
