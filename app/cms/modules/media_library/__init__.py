"""
Media library: uploaded images and documents.

Blobs live in the configured storage backend under `media/`; the database
row keeps the public URL and descriptive metadata.
"""
