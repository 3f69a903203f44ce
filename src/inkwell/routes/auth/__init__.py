"""
Authentication package: models, token and password services, FastAPI dependencies and the
`/api/auth` router.
"""
