"""File Tracking: mirrors newly created files and reports on them daily.

Watches a source folder for new files, copies each one to a mirror
folder once its writer has released it, and renders a daily PDF
summary of the mirror folder's contents.
"""

__version__ = "1.0.0"
__app_name__ = "File Tracking"
