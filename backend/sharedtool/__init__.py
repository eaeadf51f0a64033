"""
SharedTool - shared license coordination through a plain text file.

Several users share one host license but cannot otherwise synchronize.
SharedTool records who is logged in, who read the shared model in and who
wrote it out last, and tells everyone else when the license is free again.
"""

__version__ = "0.1.0"
