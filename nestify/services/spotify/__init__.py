"""
Spotify catalog integration: metadata enrichment and export.
"""
