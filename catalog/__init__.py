"""
Catalog package: search proxy to the external book catalog.
"""
