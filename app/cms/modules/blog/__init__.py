"""
Blog module: posts (markdown/HTML body), categories and tags.

Posts are drafts until published; the public API only ever exposes published
posts and paginates them newest-first.
"""
