"""
Reporting layer: text output and AI prompt construction.

Modules
-------
formatters : format_price() / parse_price() + ASCII tables for the CLI.
prompts    : Traditional-Chinese prompt builders for the AI commentary.
"""
