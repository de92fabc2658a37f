"""
chomikuj-cli: a resumable downloader for the Chomikuj / ChomikBox file-hosting service.
"""

__version__ = "0.3.0"
