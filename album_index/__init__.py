"""
album-index: a live, queryable album index over a directory of audio files.
"""
