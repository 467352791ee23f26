"""Image search - orchestration and enrichment of embedding matches"""
