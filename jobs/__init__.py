"""
Standalone scripts, run with `python -m jobs.<name>`.
"""
