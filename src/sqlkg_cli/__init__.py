"""
sqlkg CLI - command line front end for the extraction engine.
"""
