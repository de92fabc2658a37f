"""
Command-line interface layer: the Typer application and its Rich output.
"""
