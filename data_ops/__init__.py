"""
Data operations package: data source resolution and the default fetch provider.
"""
