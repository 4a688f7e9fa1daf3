"""
Analytics module: append-only page/post/lead events plus dashboard rollups.
"""
