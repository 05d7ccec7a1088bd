"""
Application services: tile cache, tile resolution and Gemini summaries.
"""
