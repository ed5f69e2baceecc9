"""
Explorer Django application.

Crawls the product pages of a retail website, extracts alcoholic-beverage
records and resolves their country/region of origin.
"""
