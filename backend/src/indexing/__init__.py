"""Catalog indexing - background runs and their status tracking"""
