"""
Core layers: clinical rules, visit workflow and report export.
"""
