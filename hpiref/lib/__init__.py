"""
Library modules that implement the parsing of HPI archives and the infrastructure used by units.
"""
