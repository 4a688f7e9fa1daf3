"""
Lead-capture forms: admin-defined field schemas and visitor submissions.
"""
