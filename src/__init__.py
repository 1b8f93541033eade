"""
Resource declarations for the storage-lab stack, grouped by concern
"""
