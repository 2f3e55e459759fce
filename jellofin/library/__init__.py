"""Media library: scanning, metadata, catalog and search"""
