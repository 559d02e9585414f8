"""
Command-line tools for the autosave engine.
"""
