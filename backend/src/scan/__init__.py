"""Visual search HTTP surface (/api/platform/scan)"""
