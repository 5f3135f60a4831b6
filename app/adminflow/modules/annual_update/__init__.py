"""
Annual information update: one request per calendar year, emailed to every
active user with a signed link to confirm their details.
"""
