"""
Infrastructure Layer

Model provider sessions, the SQL-backed test store and the progress channel.
"""
