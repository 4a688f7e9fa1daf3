"""
Page builder module.

Pages are stored as a JSON content tree ({"sections": [...], "metadata": {...}})
edited in the admin page builder and served to the public site by slug once
published.
"""
