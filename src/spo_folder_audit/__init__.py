"""SharePoint Online / OneDrive folder activity audit reporting."""

__version__ = "0.1.0"
