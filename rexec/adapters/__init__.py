"""
Adapters: command line interface
"""
