# Utilities Package
"""
HTML selection, Markdown conversion, data models and configuration.
"""
