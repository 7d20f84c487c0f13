"""
RE Deal Engine - rental property deal modeling.
"""
