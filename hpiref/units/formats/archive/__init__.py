"""
Units that extract the contents of archive formats.
"""
