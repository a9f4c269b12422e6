"""
Marginalia
----------

Relational data-access layer for a personal reading and annotation
application: readers, notebooks, sources, notes, tags and their
associations, with soft delete, a hard-delete sweep and JSON document
flattening.
"""
__version__ = "0.1.0"
